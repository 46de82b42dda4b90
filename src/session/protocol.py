"""Protocol session: the bare browser operations the controller builds on."""

from __future__ import annotations

import logging
from typing import Any, Optional, Protocol

from playwright.async_api import Page

logger = logging.getLogger(__name__)

DEFAULT_NAVIGATION_TIMEOUT_MS = 30000


class ProtocolSession(Protocol):
    async def screenshot(self) -> bytes: ...

    async def execute(self, script: str) -> Any: ...

    async def navigate(self, url: Optional[str] = None) -> Any: ...

    async def set_orientation(self, orientation: str) -> None: ...

    async def resize(self, width: int, height: int) -> None: ...

    def set_timeout(self, timeout_ms: Optional[int]) -> None: ...

    def extend_options(self, options: dict[str, Any]) -> None: ...

    async def close(self) -> None: ...


class PlaywrightSession:
    """ProtocolSession backed by a Playwright page."""

    def __init__(self, page: Page, options: dict[str, Any] | None = None):
        self.page = page
        self.options: dict[str, Any] = dict(options or {})

    async def screenshot(self) -> bytes:
        return await self.page.screenshot(full_page=False)

    async def execute(self, script: str) -> Any:
        """Run ``script`` as a function body, WebDriver ``execute`` style."""
        return await self.page.evaluate(f"() => {{ {script} }}")

    async def navigate(self, url: Optional[str] = None) -> Any:
        if not url:
            return self.page.url
        await self.page.goto(url)
        return self.page.url

    async def set_orientation(self, orientation: str) -> None:
        # Desktop Chromium cannot rotate; swap the viewport axes instead
        size = self.page.viewport_size
        if not size:
            return
        width, height = size["width"], size["height"]
        is_landscape = width > height
        if (orientation == "landscape") != is_landscape:
            await self.page.set_viewport_size({"width": height, "height": width})

    async def resize(self, width: int, height: int) -> None:
        await self.page.set_viewport_size({"width": width, "height": height})

    def set_timeout(self, timeout_ms: Optional[int]) -> None:
        self.page.set_default_navigation_timeout(timeout_ms or DEFAULT_NAVIGATION_TIMEOUT_MS)

    def extend_options(self, options: dict[str, Any]) -> None:
        self.options.update(options or {})

    async def close(self) -> None:
        await self.page.close()
