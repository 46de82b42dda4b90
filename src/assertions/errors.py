"""assertView error types.

``AssertViewError`` itself is raised for invalid calls. Its subclasses
describe visual mismatches; they are recorded in the test's results log
rather than raised.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

from src.models.assert_view import Bounds, ImageDescriptor
from src.session.image import Image


class AssertViewError(Exception):
    """Invalid assertView call (missing or duplicate state name)."""


class NoRefImageError(AssertViewError):
    def __init__(self, state_name: str, current: ImageDescriptor, reference: ImageDescriptor):
        self.state_name = state_name
        self.curr_img = current
        self.ref_img = reference
        super().__init__(f"can not find reference image at {reference.path} for \"{state_name}\" state")

    @classmethod
    def create(cls, state_name: str, current: ImageDescriptor, reference: ImageDescriptor) -> "NoRefImageError":
        return cls(state_name, current, reference)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": "no_ref_image",
            "state_name": self.state_name,
            "message": str(self),
            "curr_img": self.curr_img.model_dump(),
            "ref_img": self.ref_img.model_dump(),
        }


class ImageDiffError(AssertViewError):
    def __init__(
        self,
        state_name: str,
        current: ImageDescriptor,
        reference: ImageDescriptor,
        diff_opts: dict[str, Any],
        diff_bounds: Optional[Bounds] = None,
        diff_clusters: Optional[list[Bounds]] = None,
        meta_info: Optional[dict[str, Any]] = None,
    ):
        self.state_name = state_name
        self.curr_img = current
        self.ref_img = reference
        self.diff_opts = diff_opts
        self.diff_bounds = diff_bounds
        self.diff_clusters = diff_clusters
        self.meta_info = meta_info
        super().__init__(f"images are different for \"{state_name}\" state")

    @classmethod
    def create(cls, state_name: str, current: ImageDescriptor, reference: ImageDescriptor,
               diff_opts: dict[str, Any], diff_bounds: Optional[Bounds] = None,
               diff_clusters: Optional[list[Bounds]] = None,
               meta_info: Optional[dict[str, Any]] = None) -> "ImageDiffError":
        return cls(state_name, current, reference, diff_opts, diff_bounds, diff_clusters, meta_info)

    async def save_diff_to(self, diff_path: str | Path) -> str:
        """Write an image highlighting the differing pixels and return its path."""
        diff = await Image.build_diff(self.diff_opts)
        diff.save(diff_path)
        return str(diff_path)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": "image_diff",
            "state_name": self.state_name,
            "message": str(self),
            "curr_img": self.curr_img.model_dump(),
            "ref_img": self.ref_img.model_dump(),
            "diff_opts": self.diff_opts,
            "diff_bounds": self.diff_bounds.model_dump() if self.diff_bounds else None,
            "diff_clusters": [c.model_dump() for c in self.diff_clusters] if self.diff_clusters else None,
            "meta_info": self.meta_info,
        }
