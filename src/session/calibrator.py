"""Calibrator: finds where the page starts inside a raw screenshot.

A page painted in a marker colour is opened and captured. The marker's
top-left corner gives the offset of browser chrome (if any) and its width,
compared with the CSS viewport width, tells whether screenshots come in
device pixels.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from PIL import Image as PILImage
from PIL import ImageChops

from src.models.assert_view import Calibration
from src.session.image import Image

if TYPE_CHECKING:
    from src.session.controller import SessionController

logger = logging.getLogger(__name__)

MARKER_COLOR = (148, 250, 0)
CALIBRATION_PAGE = (
    "data:text/html,<html><body style='margin:0;background:rgb(148,250,0)'></body></html>"
)


class CalibrationError(Exception):
    """Calibration marker could not be located in the screenshot."""


class Calibrator:
    def __init__(self):
        self._cache: dict[str, Calibration] = {}

    async def calibrate(self, controller: "SessionController") -> Calibration:
        if controller.id in self._cache:
            return self._cache[controller.id]

        await controller.open(CALIBRATION_PAGE)
        inner_width = await controller.eval_script("document.documentElement.clientWidth || window.innerWidth")
        image = await controller.capture_viewport_image()

        calibration = self._analyze(image, inner_width or 0)
        logger.info("Calibrated %s: top=%d left=%d use_pixel_ratio=%s",
                    controller.id, calibration.top, calibration.left, calibration.use_pixel_ratio)
        self._cache[controller.id] = calibration
        return calibration

    @staticmethod
    def _analyze(image: Image, inner_width: float) -> Calibration:
        img = image.pil
        solid = PILImage.new("RGB", img.size, MARKER_COLOR)
        diff = ImageChops.difference(img, solid).convert("L")
        marker = diff.point(lambda v: 255 if v == 0 else 0).getbbox()
        if marker is None:
            raise CalibrationError("Could not find calibration marker in the screenshot")

        left, top, right, _ = marker
        marker_width = right - left
        return Calibration(top=top, left=left, use_pixel_ratio=marker_width > inner_width)
