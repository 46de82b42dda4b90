"""Option merging for assertView.

Precedence, highest first:

1. options passed to the ``assert_view`` call
2. the browser's ``assert_view_opts`` section
3. named top-level browser settings (``NAMED_CONFIG_KEYS``)
4. engine defaults

Every layer is a plain dict; a key set to None does not override lower layers.
"""

from __future__ import annotations

from typing import Any

from src.models.assert_view import Calibration
from src.models.config import BrowserConfig

NAMED_CONFIG_KEYS = ("composite_image", "screenshot_delay", "tolerance", "antialiasing_tolerance")

# Options the client script needs to compute the capture area
PREPARE_KEYS = (
    "ignore_selectors",
    "allow_viewport_overflow",
    "capture_element_from_top",
    "selector_to_scroll",
    "composite_image",
    "use_pixel_ratio",
)


def engine_defaults(calibration: Calibration | None) -> dict[str, Any]:
    return {
        "use_pixel_ratio": calibration.use_pixel_ratio if calibration else True,
        "ignore_elements": [],
        "capture_element_from_top": True,
        "allow_viewport_overflow": False,
    }


def merge_layers(*layers: dict[str, Any] | None) -> dict[str, Any]:
    """Merge dicts given lowest precedence first; later non-None values win."""
    merged: dict[str, Any] = {}
    for layer in layers:
        for key, value in (layer or {}).items():
            if value is not None:
                merged[key] = value
    return merged


def merge_assert_view_opts(
    call_opts: dict[str, Any] | None,
    config: BrowserConfig,
    calibration: Calibration | None = None,
) -> dict[str, Any]:
    named = {key: getattr(config, key) for key in NAMED_CONFIG_KEYS}
    merged = merge_layers(engine_defaults(calibration), named, config.assert_view_opts, call_opts)
    merged["ignore_selectors"] = normalize_selectors(merged.pop("ignore_elements", None))
    return merged


def normalize_selectors(selectors: str | list[str] | tuple[str, ...] | None) -> list[str]:
    if selectors is None:
        return []
    if isinstance(selectors, str):
        return [selectors]
    return [s for s in selectors if s]


def prepare_opts(opts: dict[str, Any]) -> dict[str, Any]:
    return {key: opts[key] for key in PREPARE_KEYS if key in opts}
