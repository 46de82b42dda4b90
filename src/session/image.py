"""Image handle over Pillow, plus the default reference comparator."""

from __future__ import annotations

import asyncio
import io
import logging
from pathlib import Path
from typing import Any

from PIL import Image as PILImage
from PIL import ImageChops, ImageDraw

from src.models.assert_view import Bounds, CompareOutcome, ImageSize, Rect

logger = logging.getLogger(__name__)


class Image:
    """In-memory screenshot. Every transformation returns a new handle."""

    def __init__(self, pil_image: PILImage.Image):
        self._img = pil_image.convert("RGB") if pil_image.mode != "RGB" else pil_image

    @classmethod
    def create(cls, buffer: bytes) -> "Image":
        return cls(PILImage.open(io.BytesIO(buffer)))

    @classmethod
    def from_file(cls, path: str | Path) -> "Image":
        with PILImage.open(path) as img:
            img.load()
            return cls(img)

    @staticmethod
    def read_size(path: str | Path) -> ImageSize:
        """Read dimensions from the file header without decoding pixels."""
        with PILImage.open(path) as img:
            width, height = img.size
        return ImageSize(width=width, height=height)

    @property
    def pil(self) -> PILImage.Image:
        return self._img

    def get_size(self) -> ImageSize:
        width, height = self._img.size
        return ImageSize(width=width, height=height)

    def crop(self, area: Rect, scale_factor: float = 1) -> "Image":
        """Crop to ``area`` (scaled), clamped to the image bounds."""
        scaled = area.scale(scale_factor)
        width, height = self._img.size
        left = max(0, min(width, round(scaled.left)))
        top = max(0, min(height, round(scaled.top)))
        right = max(left, min(width, round(scaled.right)))
        bottom = max(top, min(height, round(scaled.bottom)))
        return Image(self._img.crop((left, top, right, bottom)))

    def clear(self, areas: list[Rect], scale_factor: float = 1, color=(0, 0, 0)) -> "Image":
        """Fill each area (scaled) with a solid colour."""
        img = self._img.copy()
        draw = ImageDraw.Draw(img)
        for area in areas:
            scaled = area.scale(scale_factor)
            left, top = round(scaled.left), round(scaled.top)
            right, bottom = round(scaled.right), round(scaled.bottom)
            if right <= left or bottom <= top:
                continue
            draw.rectangle((left, top, right - 1, bottom - 1), fill=color)
        return Image(img)

    def join(self, other: "Image") -> "Image":
        """Stack ``other`` below this image."""
        width = max(self._img.width, other.pil.width)
        joined = PILImage.new("RGB", (width, self._img.height + other.pil.height))
        joined.paste(self._img, (0, 0))
        joined.paste(other.pil, (0, self._img.height))
        return Image(joined)

    def save(self, path: str | Path) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        self._img.save(path, format="PNG")

    @staticmethod
    async def compare(ref_path: str, curr_path: str, opts: dict[str, Any] | None = None) -> CompareOutcome:
        """Default comparator; runs Pillow work off the event loop."""
        return await asyncio.to_thread(_compare_files, ref_path, curr_path, opts or {})

    @staticmethod
    async def build_diff(diff_opts: dict[str, Any]) -> "Image":
        return await asyncio.to_thread(_build_diff, diff_opts)


def _diff_mask(ref: PILImage.Image, curr: PILImage.Image, tolerance: float) -> PILImage.Image:
    """Mask (mode L) with 255 where any channel differs by more than tolerance."""
    r, g, b = ImageChops.difference(ref, curr).split()
    channel_max = ImageChops.lighter(ImageChops.lighter(r, g), b)
    return channel_max.point(lambda v: 255 if v > tolerance else 0)


def _clear_ignored(img: PILImage.Image, areas: list[Any] | None) -> PILImage.Image:
    rects = [a if isinstance(a, Rect) else Rect(**a) for a in areas or []]
    return Image(img).clear(rects).pil if rects else img


def _compare_files(ref_path: str, curr_path: str, opts: dict[str, Any]) -> CompareOutcome:
    ref = Image.from_file(ref_path).pil
    curr = Image.from_file(curr_path).pil
    meta_info = {"ref_img": {"size": {"width": ref.width, "height": ref.height}}}

    if ref.size != curr.size:
        width, height = max(ref.width, curr.width), max(ref.height, curr.height)
        bounds = Bounds(left=0, top=0, right=width - 1, bottom=height - 1)
        return CompareOutcome(equal=False, diff_bounds=bounds, diff_clusters=[bounds], meta_info=meta_info)

    ref = _clear_ignored(ref, opts.get("ignore_areas"))
    curr = _clear_ignored(curr, opts.get("ignore_areas"))
    mask = _diff_mask(ref, curr, opts.get("tolerance") or 0)
    bbox = mask.getbbox()
    if bbox is None:
        return CompareOutcome(equal=True, meta_info=meta_info)

    left, top, right, bottom = bbox
    bounds = Bounds(left=left, top=top, right=right - 1, bottom=bottom - 1)
    clusters = [bounds] if (opts.get("compare_opts") or {}).get("should_cluster") else None
    logger.debug("Images differ within %s", bbox)
    return CompareOutcome(equal=False, diff_bounds=bounds, diff_clusters=clusters, meta_info=meta_info)


def _build_diff(diff_opts: dict[str, Any]) -> Image:
    ref = Image.from_file(diff_opts["reference"]).pil
    curr = Image.from_file(diff_opts["current"]).pil
    if ref.size != curr.size:
        curr = curr.resize(ref.size)

    ref = _clear_ignored(ref, diff_opts.get("ignore_areas"))
    curr = _clear_ignored(curr, diff_opts.get("ignore_areas"))
    mask = _diff_mask(ref, curr, diff_opts.get("tolerance") or 0)
    highlight = PILImage.new("RGB", curr.size, diff_opts.get("diff_color", "#ff00ff"))
    return Image(PILImage.composite(highlight, curr, mask))
