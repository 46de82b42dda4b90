"""Pytest configuration and shared fixtures."""

import io
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, Mock

import pytest
from PIL import Image as PILImage

from src.models.config import BrowserConfig, SystemConfig
from src.session.controller import SessionController


# ============================================================================
# Images
# ============================================================================


def png_bytes(width: int = 100, height: int = 80, color=(255, 255, 255)) -> bytes:
    buffer = io.BytesIO()
    PILImage.new("RGB", (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def make_png():
    """Factory writing a solid-colour PNG to disk."""
    def _make(path: Path, width: int = 100, height: int = 80, color=(255, 255, 255)) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        PILImage.new("RGB", (width, height), color).save(path, format="PNG")
        return path
    return _make


@pytest.fixture
def make_png_bytes():
    return png_bytes


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def browser_config(tmp_path: Path) -> BrowserConfig:
    """Browser config writing references and captures under tmp_path."""
    return BrowserConfig(
        screenshots_dir=str(tmp_path / "screens"),
        system=SystemConfig(diff_color="#ff0000", temp_dir=str(tmp_path / "tmp")),
    )


# ============================================================================
# Session Fixtures
# ============================================================================


def default_page_meta(**overrides: Any) -> dict[str, Any]:
    """What the client script returns for a 100x80 viewport."""
    meta = {
        "captureArea": {"top": 0, "left": 0, "width": 100, "height": 80},
        "ignoreAreas": [],
        "viewport": {"top": 0, "left": 0, "width": 100, "height": 80},
        "documentHeight": 80,
        "documentWidth": 100,
        "canHaveCaret": False,
        "pixelRatio": 1,
    }
    meta.update(overrides)
    return meta


@pytest.fixture
def page_meta():
    return default_page_meta


@pytest.fixture
def mock_session():
    """A ProtocolSession stand-in.

    ``execute`` answers client-bridge ``prepareScreenshot`` calls with
    ``session.prepare_result`` and returns None for everything else.
    """
    session = Mock()
    session.prepare_result = default_page_meta()

    async def execute(script: str):
        if "prepareScreenshot.apply" in script:
            return session.prepare_result
        return None

    session.execute = AsyncMock(side_effect=execute)
    session.screenshot = AsyncMock(return_value=png_bytes())
    session.navigate = AsyncMock(return_value="https://example.com/current")
    session.set_orientation = AsyncMock()
    session.resize = AsyncMock()
    session.close = AsyncMock()
    session.set_timeout = Mock()
    session.extend_options = Mock()
    return session


@pytest.fixture
def make_controller(browser_config: BrowserConfig, mock_session):
    """Factory for controllers over the mock session (not yet initialized)."""
    def _make(config: BrowserConfig | None = None, session=None, **kwargs) -> SessionController:
        return SessionController(
            config or browser_config,
            kwargs.pop("browser_id", "chrome"),
            session or mock_session,
            version=kwargs.pop("version", "120.0"),
            **kwargs,
        )
    return _make


@pytest.fixture
def calibrator():
    """Calibrator stub returning a fixed calibration."""
    from src.models.assert_view import Calibration

    stub = Mock()
    stub.calibrate = AsyncMock(return_value=Calibration(top=0, left=0, use_pixel_ratio=False))
    return stub
