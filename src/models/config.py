"""Configuration models for browser sessions and visual assertions."""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, Callable, Literal, Optional

from pydantic import BaseModel, Field, field_validator


class WindowSize(BaseModel):
    width: int
    height: int


class SystemConfig(BaseModel):
    diff_color: str = "#ff00ff"
    temp_dir: Optional[str] = None
    temp_opts: dict[str, Any] = Field(default_factory=dict)


class RuntimeConfig(BaseModel):
    """Per-run switches, set by whoever launches the run (usually the CLI)."""
    update_refs: bool = False
    record_successes: bool = False
    temp_opts: dict[str, Any] = Field(default_factory=dict)


def _default_assert_view_opts() -> dict[str, Any]:
    return {
        "ignore_elements": [],
        "capture_element_from_top": True,
        "allow_viewport_overflow": False,
    }


def _default_compare_opts() -> dict[str, Any]:
    return {
        "should_cluster": False,
        "clusters_size": 10,
        "stop_on_first_fail": False,
    }


class BrowserConfig(BaseModel):
    browser_name: str = "chromium"
    desired_capabilities: dict[str, Any] = Field(default_factory=dict)

    # Navigation
    base_url: str = ""
    http_timeout: Optional[int] = None  # ms
    url_http_timeout: Optional[int] = None  # ms, used only while navigating

    # Session preparation
    orientation: Optional[Literal["portrait", "landscape"]] = None
    window_size: Optional[WindowSize] = None
    calibrate: bool = False
    meta: dict[str, Any] = Field(default_factory=dict)
    prepare_browser: Optional[Callable[[Any], None]] = Field(default=None, exclude=True)

    # Screenshots
    screenshot_mode: Literal["auto", "fullpage", "viewport"] = "auto"
    screenshot_delay: int = 0  # ms
    composite_image: bool = True
    screenshots_dir: str = "screens"
    screenshot_path_template: str = "{screenshots_dir}/{test_id}/{browser_id}/{state}.png"
    screenshot_path_resolver: Optional[Callable[[dict, str], str]] = Field(default=None, exclude=True)

    # Comparison
    tolerance: float = 2.3
    antialiasing_tolerance: float = 0
    compare_opts: dict[str, Any] = Field(default_factory=_default_compare_opts)
    build_diff_opts: dict[str, Any] = Field(
        default_factory=lambda: {"ignore_antialiasing": True, "ignore_caret": True}
    )
    assert_view_opts: dict[str, Any] = Field(default_factory=_default_assert_view_opts)

    system: SystemConfig = Field(default_factory=SystemConfig)

    @field_validator("window_size", mode="before")
    @classmethod
    def parse_window_size(cls, v: Any) -> Any:
        if isinstance(v, str):
            match = re.fullmatch(r"\s*(\d+)\s*x\s*(\d+)\s*", v)
            if not match:
                raise ValueError(f"window_size must look like '1280x720', got '{v}'")
            return {"width": int(match.group(1)), "height": int(match.group(2))}
        return v

    @field_validator("base_url")
    @classmethod
    def keep_trailing_slash(cls, v: str) -> str:
        # urljoin drops the last path segment of a base without a trailing slash
        if v and not v.endswith("/"):
            return v + "/"
        return v

    @field_validator("assert_view_opts", mode="before")
    @classmethod
    def fill_assert_view_defaults(cls, v: Any) -> Any:
        if isinstance(v, dict):
            return {**_default_assert_view_opts(), **v}
        return v

    def get_screenshot_path(self, meta: dict[str, Any], state_name: str) -> str:
        """Resolve the reference image path for a state."""
        if self.screenshot_path_resolver is not None:
            return self.screenshot_path_resolver(meta, state_name)
        values = {"test_id": "default", "browser_id": "default", **meta}
        values.update(screenshots_dir=self.screenshots_dir, state=state_name)
        return self.screenshot_path_template.format(**values)


class FrameworkConfig(BaseModel):
    browsers: dict[str, BrowserConfig] = Field(
        default_factory=lambda: {"chromium": BrowserConfig()}
    )
    system: SystemConfig = Field(default_factory=SystemConfig)

    def model_post_init(self, __context) -> None:
        # Browsers without their own system section share the top-level one
        for browser in self.browsers.values():
            if "system" not in browser.model_fields_set:
                browser.system = self.system

    def for_browser(self, browser_id: str) -> BrowserConfig:
        if browser_id not in self.browsers:
            raise KeyError(f"Unknown browser '{browser_id}'")
        return self.browsers[browser_id]

    @classmethod
    def load(cls, path: str | Path) -> "FrameworkConfig":
        """Load config from a JSON file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path) as f:
            data = json.load(f)
        return cls(**data)

    def save(self, path: str | Path) -> None:
        """Save config to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.model_dump(), f, indent=2)
