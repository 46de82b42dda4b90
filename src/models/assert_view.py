"""Data structures shared by the session controller and assertView."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ImageSize(BaseModel):
    width: int
    height: int


class Rect(BaseModel):
    """Area in CSS pixels, as reported by the client script."""
    top: float = 0
    left: float = 0
    width: float = 0
    height: float = 0

    @property
    def bottom(self) -> float:
        return self.top + self.height

    @property
    def right(self) -> float:
        return self.left + self.width

    def scale(self, factor: float) -> "Rect":
        return Rect(
            top=self.top * factor,
            left=self.left * factor,
            width=self.width * factor,
            height=self.height * factor,
        )


class Bounds(BaseModel):
    """Inclusive pixel bounds of a diff region."""
    left: int
    top: int
    right: int
    bottom: int


class ImageDescriptor(BaseModel):
    path: str
    size: Optional[ImageSize] = None  # None means the image does not exist


class Calibration(BaseModel):
    top: int = 0
    left: int = 0
    use_pixel_ratio: bool = True


class PageMeta(BaseModel):
    """Result of the client-side ``prepareScreenshot`` call."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    capture_area: Rect = Field(default_factory=Rect)
    ignore_areas: list[Rect] = Field(default_factory=list)
    viewport: Rect = Field(default_factory=Rect)
    document_height: float = 0
    document_width: float = 0
    can_have_caret: bool = False
    pixel_ratio: float = 1


class CompareOutcome(BaseModel):
    equal: bool = False
    diff_bounds: Optional[Bounds] = None
    diff_clusters: Optional[list[Bounds]] = None
    meta_info: Optional[dict[str, Any]] = None

    @property
    def ref_size(self) -> ImageSize | None:
        size = ((self.meta_info or {}).get("ref_img") or {}).get("size")
        return ImageSize(**size) if size else None


class AssertViewSuccess(BaseModel):
    state_name: str
    ref_img: ImageDescriptor
