"""Screen shooter: turns a prepared page into the image of its capture area."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from src.models.assert_view import PageMeta, Rect
from src.session.image import Image

if TYPE_CHECKING:
    from src.session.controller import SessionController

logger = logging.getLogger(__name__)


class ScreenShooter:
    def __init__(self, controller: "SessionController"):
        self._controller = controller

    async def capture(
        self,
        page: PageMeta,
        *,
        composite_image: bool = False,
        screenshot_delay: int | None = None,
        allow_viewport_overflow: bool = False,
        selector_to_scroll: str | None = None,
    ) -> Image:
        viewport_image = await self._controller.capture_viewport_image(page, screenshot_delay)
        image = viewport_image.crop(self._visible_part(page), scale_factor=page.pixel_ratio)
        ignore_rects = self.ignore_rects(page)

        remaining = page.capture_area.bottom - page.viewport.bottom
        if not composite_image or remaining <= 0:
            if remaining > 0 and not allow_viewport_overflow:
                logger.warning("Capture area exceeds viewport by %dpx, image is cropped", remaining)
            return image.clear(ignore_rects) if ignore_rects else image

        page = page.model_copy(deep=True)
        while remaining > 0:
            step = min(remaining, page.viewport.height)
            logger.debug("Scrolling %dpx to capture the rest of the area", step)
            await self._controller.scroll_by(0, step, selector_to_scroll)
            page.viewport.top += step

            next_image = await self._controller.capture_viewport_image(page)
            part = Rect(
                top=page.viewport.height - step,
                left=page.capture_area.left - page.viewport.left,
                width=page.capture_area.width,
                height=step,
            )
            image = image.join(next_image.crop(part, scale_factor=page.pixel_ratio))
            remaining -= step

        return image.clear(ignore_rects) if ignore_rects else image

    @staticmethod
    def ignore_rects(page: PageMeta) -> list[Rect]:
        """Ignore areas in pixels of the captured image.

        The image starts at the visible top of the capture area, so rects are
        translated to that origin and scaled by the pixel ratio.
        """
        top = max(page.capture_area.top, page.viewport.top)
        left = page.capture_area.left
        return [
            Rect(top=a.top - top, left=a.left - left, width=a.width, height=a.height).scale(page.pixel_ratio)
            for a in page.ignore_areas
        ]

    @staticmethod
    def _visible_part(page: PageMeta) -> Rect:
        """Capture area translated into viewport coordinates, clipped to it."""
        area, viewport = page.capture_area, page.viewport
        top = max(area.top, viewport.top)
        bottom = min(area.bottom, viewport.bottom)
        return Rect(
            top=top - viewport.top,
            left=area.left - viewport.left,
            width=area.width,
            height=max(0, bottom - top),
        )
