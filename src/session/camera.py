"""Camera: raw viewport screenshots corrected by the session calibration."""

from __future__ import annotations

import logging
from typing import Awaitable, Callable

from src.models.assert_view import Calibration, PageMeta, Rect
from src.session.image import Image

logger = logging.getLogger(__name__)


class Camera:
    def __init__(self, screenshot_mode: str, take_screenshot: Callable[[], Awaitable[bytes]]):
        self.screenshot_mode = screenshot_mode
        self._take_screenshot = take_screenshot
        self._calibration: Calibration | None = None

    @property
    def calibration(self) -> Calibration | None:
        return self._calibration

    def calibrate(self, calibration: Calibration) -> None:
        self._calibration = calibration

    async def capture_viewport_image(self, page: PageMeta | None = None) -> Image:
        buffer = await self._take_screenshot()
        image = self._apply_calibration(Image.create(buffer))
        return self._crop_to_viewport(image, page)

    def _apply_calibration(self, image: Image) -> Image:
        if not self._calibration:
            return image
        size = image.get_size()
        left, top = self._calibration.left, self._calibration.top
        return image.crop(Rect(left=left, top=top, width=size.width - left, height=size.height - top))

    def _crop_to_viewport(self, image: Image, page: PageMeta | None) -> Image:
        if page is None:
            return image

        area = page.viewport.model_copy()
        if not self._is_full_page(image, page):
            area.top, area.left = 0, 0
        return image.crop(area, scale_factor=page.pixel_ratio)

    def _is_full_page(self, image: Image, page: PageMeta) -> bool:
        if self.screenshot_mode == "fullpage":
            return True
        if self.screenshot_mode == "viewport":
            return False
        # auto: the screenshot already covers the whole document
        return page.document_height * page.pixel_ratio <= image.get_size().height
