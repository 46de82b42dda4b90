"""Tests for the camera and the screen shooter."""

import io
from unittest.mock import AsyncMock, Mock

import pytest
from PIL import Image as PILImage

from src.models.assert_view import Calibration, PageMeta
from src.session.camera import Camera
from src.session.image import Image
from src.session.screen_shooter import ScreenShooter


def _two_tone_png(width: int, height: int, split: int) -> bytes:
    """White image whose rows from ``split`` down are black."""
    img = PILImage.new("RGB", (width, height), (255, 255, 255))
    img.paste((0, 0, 0), (0, split, width, height))
    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()


def _page(**kwargs) -> PageMeta:
    data = {
        "capture_area": {"top": 0, "left": 0, "width": 100, "height": 80},
        "viewport": {"top": 0, "left": 0, "width": 100, "height": 80},
        "document_height": 80,
        "pixel_ratio": 1,
    }
    data.update(kwargs)
    return PageMeta(**data)


class TestCamera:
    """Tests for Camera.capture_viewport_image."""

    @pytest.mark.asyncio
    async def test_returns_raw_image_without_calibration(self, make_png_bytes):
        camera = Camera("auto", AsyncMock(return_value=make_png_bytes(120, 90)))
        image = await camera.capture_viewport_image()
        assert image.get_size().width == 120
        assert image.get_size().height == 90

    @pytest.mark.asyncio
    async def test_applies_calibration_offset(self, make_png_bytes):
        camera = Camera("auto", AsyncMock(return_value=make_png_bytes(120, 90)))
        camera.calibrate(Calibration(top=10, left=5))
        image = await camera.capture_viewport_image()
        assert (image.get_size().width, image.get_size().height) == (115, 80)

    @pytest.mark.asyncio
    async def test_crops_to_viewport_scaled_by_pixel_ratio(self, make_png_bytes):
        camera = Camera("viewport", AsyncMock(return_value=make_png_bytes(400, 400)))
        page = _page(viewport={"top": 500, "left": 0, "width": 100, "height": 80}, pixel_ratio=2,
                     document_height=2000)
        image = await camera.capture_viewport_image(page)
        assert (image.get_size().width, image.get_size().height) == (200, 160)

    @pytest.mark.asyncio
    async def test_fullpage_mode_uses_viewport_offset(self):
        camera = Camera("fullpage", AsyncMock(return_value=_two_tone_png(100, 200, 100)))
        page = _page(viewport={"top": 100, "left": 0, "width": 100, "height": 50}, document_height=200)
        image = await camera.capture_viewport_image(page)
        assert image.get_size().height == 50
        assert image.pil.getpixel((0, 0)) == (0, 0, 0)

    @pytest.mark.asyncio
    async def test_auto_mode_detects_viewport_screenshot(self):
        camera = Camera("auto", AsyncMock(return_value=_two_tone_png(100, 50, 25)))
        page = _page(viewport={"top": 100, "left": 0, "width": 100, "height": 50}, document_height=400)
        image = await camera.capture_viewport_image(page)
        assert image.pil.getpixel((0, 0)) == (255, 255, 255)


class TestScreenShooter:
    """Tests for ScreenShooter.capture."""

    @pytest.mark.asyncio
    async def test_crops_capture_area(self, make_png_bytes):
        controller = Mock()
        controller.capture_viewport_image = AsyncMock(return_value=Image.create(make_png_bytes(100, 80)))
        page = _page(capture_area={"top": 10, "left": 20, "width": 30, "height": 40})

        image = await ScreenShooter(controller).capture(page, screenshot_delay=100)

        assert (image.get_size().width, image.get_size().height) == (30, 40)
        controller.capture_viewport_image.assert_awaited_once_with(page, 100)

    @pytest.mark.asyncio
    async def test_translates_area_by_scroll_position(self):
        controller = Mock()
        controller.capture_viewport_image = AsyncMock(return_value=Image.create(_two_tone_png(100, 80, 40)))
        page = _page(
            capture_area={"top": 540, "left": 0, "width": 100, "height": 10},
            viewport={"top": 500, "left": 0, "width": 100, "height": 80},
            document_height=2000,
        )

        image = await ScreenShooter(controller).capture(page)

        assert image.get_size().height == 10
        assert image.pil.getpixel((0, 0)) == (0, 0, 0)

    @pytest.mark.asyncio
    async def test_clips_overflow_without_composite(self, make_png_bytes):
        controller = Mock()
        controller.capture_viewport_image = AsyncMock(return_value=Image.create(make_png_bytes(100, 80)))
        controller.scroll_by = AsyncMock()
        page = _page(capture_area={"top": 40, "left": 0, "width": 100, "height": 100})

        image = await ScreenShooter(controller).capture(page, allow_viewport_overflow=True)

        assert image.get_size().height == 40
        controller.scroll_by.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_composite_scrolls_and_stitches(self, make_png_bytes):
        controller = Mock()
        controller.capture_viewport_image = AsyncMock(return_value=Image.create(make_png_bytes(100, 80)))
        controller.scroll_by = AsyncMock()
        page = _page(capture_area={"top": 0, "left": 0, "width": 100, "height": 200}, document_height=200)

        image = await ScreenShooter(controller).capture(page, composite_image=True, selector_to_scroll=".list")

        assert image.get_size().height == 200
        assert controller.capture_viewport_image.await_count == 3
        assert [c.args for c in controller.scroll_by.await_args_list] == [(0, 80, ".list"), (0, 40, ".list")]

    @pytest.mark.asyncio
    async def test_clears_ignore_areas_relative_to_capture_area(self, make_png_bytes):
        controller = Mock()
        controller.capture_viewport_image = AsyncMock(return_value=Image.create(make_png_bytes(100, 80)))
        page = _page(
            capture_area={"top": 10, "left": 20, "width": 30, "height": 40},
            ignore_areas=[{"top": 15, "left": 25, "width": 5, "height": 5}],
        )

        image = await ScreenShooter(controller).capture(page)

        assert image.pil.getpixel((5, 5)) == (0, 0, 0)
        assert image.pil.getpixel((9, 9)) == (0, 0, 0)
        assert image.pil.getpixel((4, 4)) == (255, 255, 255)
        assert image.pil.getpixel((10, 10)) == (255, 255, 255)

    @pytest.mark.asyncio
    async def test_clears_ignore_areas_scaled_by_pixel_ratio(self, make_png_bytes):
        controller = Mock()
        controller.capture_viewport_image = AsyncMock(return_value=Image.create(make_png_bytes(200, 160)))
        page = _page(pixel_ratio=2, ignore_areas=[{"top": 10, "left": 10, "width": 10, "height": 10}])

        image = await ScreenShooter(controller).capture(page)

        assert image.pil.getpixel((19, 19)) == (255, 255, 255)
        assert image.pil.getpixel((20, 20)) == (0, 0, 0)
        assert image.pil.getpixel((39, 39)) == (0, 0, 0)
        assert image.pil.getpixel((40, 40)) == (255, 255, 255)

    def test_ignore_rects_start_at_visible_top(self):
        page = _page(
            capture_area={"top": 50, "left": 0, "width": 100, "height": 100},
            viewport={"top": 60, "left": 0, "width": 100, "height": 80},
            ignore_areas=[{"top": 70, "left": 10, "width": 5, "height": 5}],
        )
        [rect] = ScreenShooter.ignore_rects(page)
        assert (rect.top, rect.left, rect.width, rect.height) == (10, 10, 5, 5)
