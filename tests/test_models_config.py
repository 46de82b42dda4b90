"""Tests for configuration models."""

import json

import pytest
from pydantic import ValidationError

from src.models.config import (
    BrowserConfig,
    FrameworkConfig,
    RuntimeConfig,
    SystemConfig,
    WindowSize,
)


class TestBrowserConfig:
    """Tests for BrowserConfig model."""

    def test_default_values(self):
        config = BrowserConfig()
        assert config.browser_name == "chromium"
        assert config.screenshot_mode == "auto"
        assert config.tolerance == 2.3
        assert config.antialiasing_tolerance == 0
        assert config.composite_image is True
        assert config.calibrate is False
        assert config.compare_opts["should_cluster"] is False
        assert config.assert_view_opts == {
            "ignore_elements": [],
            "capture_element_from_top": True,
            "allow_viewport_overflow": False,
        }

    def test_window_size_from_string(self):
        config = BrowserConfig(window_size="1280x720")
        assert config.window_size == WindowSize(width=1280, height=720)

    def test_window_size_from_dict(self):
        config = BrowserConfig(window_size={"width": 375, "height": 812})
        assert config.window_size.width == 375

    def test_invalid_window_size(self):
        with pytest.raises(ValidationError):
            BrowserConfig(window_size="wide")

    def test_base_url_gets_trailing_slash(self):
        assert BrowserConfig(base_url="https://example.com/app").base_url == "https://example.com/app/"
        assert BrowserConfig().base_url == ""

    def test_invalid_orientation(self):
        with pytest.raises(ValidationError):
            BrowserConfig(orientation="sideways")

    def test_invalid_screenshot_mode(self):
        with pytest.raises(ValidationError):
            BrowserConfig(screenshot_mode="partial")

    def test_callables_are_not_serialized(self):
        config = BrowserConfig(prepare_browser=lambda session: None, screenshot_path_resolver=lambda m, s: s)
        data = config.model_dump()
        assert "prepare_browser" not in data
        assert "screenshot_path_resolver" not in data


class TestScreenshotPath:
    def test_template_defaults(self):
        config = BrowserConfig(screenshots_dir="refs")
        assert config.get_screenshot_path({}, "plain") == "refs/default/default/plain.png"

    def test_template_uses_meta(self):
        config = BrowserConfig(screenshots_dir="refs")
        path = config.get_screenshot_path({"test_id": "login", "browser_id": "chrome"}, "form")
        assert path == "refs/login/chrome/form.png"

    def test_custom_resolver(self):
        config = BrowserConfig(screenshot_path_resolver=lambda meta, state: f"/custom/{meta['url']}/{state}.png")
        assert config.get_screenshot_path({"url": "home"}, "plain") == "/custom/home/plain.png"


class TestRuntimeConfig:
    def test_defaults(self):
        runtime = RuntimeConfig()
        assert runtime.update_refs is False
        assert runtime.record_successes is False
        assert runtime.temp_opts == {}


class TestFrameworkConfig:
    """Tests for FrameworkConfig model."""

    def test_default_browser(self):
        config = FrameworkConfig()
        assert list(config.browsers) == ["chromium"]

    def test_for_browser_unknown(self):
        with pytest.raises(KeyError):
            FrameworkConfig().for_browser("safari")

    def test_browsers_share_top_level_system(self):
        config = FrameworkConfig(
            browsers={
                "chrome": {"browser_name": "chromium"},
                "firefox": {"browser_name": "firefox", "system": {"diff_color": "#000000"}},
            },
            system={"diff_color": "#123456"},
        )
        assert config.for_browser("chrome").system.diff_color == "#123456"
        assert config.for_browser("firefox").system.diff_color == "#000000"

    def test_save_and_load(self, tmp_path):
        path = tmp_path / "nested" / "visual-config.json"
        config = FrameworkConfig(
            browsers={"chrome": BrowserConfig(window_size="800x600", tolerance=5)},
            system=SystemConfig(temp_dir="/tmp/captures"),
        )

        config.save(path)
        loaded = FrameworkConfig.load(path)

        assert json.loads(path.read_text())["browsers"]["chrome"]["tolerance"] == 5
        assert loaded.for_browser("chrome").window_size == WindowSize(width=800, height=600)
        assert loaded.system.temp_dir == "/tmp/captures"

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            FrameworkConfig.load(tmp_path / "missing.json")
