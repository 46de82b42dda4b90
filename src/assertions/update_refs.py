"""Reference update handlers used by assertView in update mode."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Any

from src.events import Emitter, Events
from src.models.assert_view import ImageDescriptor

logger = logging.getLogger(__name__)


def _save_reference(current: ImageDescriptor, reference: ImageDescriptor) -> ImageDescriptor:
    dest = Path(reference.path)
    dest.parent.mkdir(parents=True, exist_ok=True)
    shutil.copy2(current.path, dest)
    return ImageDescriptor(path=reference.path, size=current.size)


async def handle_no_ref_image(
    state_name: str,
    current: ImageDescriptor,
    reference: ImageDescriptor,
    *,
    emitter: Emitter,
) -> ImageDescriptor:
    """Store the current capture as the first reference for a state."""
    ref_img = _save_reference(current, reference)
    logger.info("Created reference for \"%s\": %s", state_name, ref_img.path)
    emitter.emit(Events.UPDATE_REFERENCE, {"state": state_name, "ref_img": ref_img})
    return ref_img


async def handle_image_diff(
    state_name: str,
    current: ImageDescriptor,
    reference: ImageDescriptor,
    *,
    emitter: Emitter,
    **opts: Any,
) -> ImageDescriptor:
    """Overwrite a mismatching reference with the current capture."""
    ref_img = _save_reference(current, reference)
    logger.info("Updated reference for \"%s\" (tolerance=%s): %s",
                state_name, opts.get("tolerance"), ref_img.path)
    emitter.emit(Events.UPDATE_REFERENCE, {"state": state_name, "ref_img": ref_img})
    return ref_img
