"""Browser launch helpers: Playwright browser and page-backed sessions."""

from __future__ import annotations

import logging
import uuid

from playwright.async_api import Browser, Playwright

from src.events import Emitter
from src.models.config import BrowserConfig
from src.session.calibrator import Calibrator
from src.session.controller import SessionController
from src.session.protocol import PlaywrightSession

logger = logging.getLogger(__name__)

DEFAULT_VIEWPORT = {"width": 1280, "height": 720}


async def launch_browser(playwright: Playwright, config: BrowserConfig, headless: bool = True) -> Browser:
    """Launch the browser type named in the config."""
    browser_type = getattr(playwright, config.browser_name, None)
    if browser_type is None:
        raise ValueError(f"Unsupported browser: {config.browser_name}")
    return await browser_type.launch(headless=headless, **config.desired_capabilities)


async def open_session(
    browser: Browser,
    browser_id: str,
    config: BrowserConfig,
    calibrator: Calibrator,
    emitter: Emitter | None = None,
) -> SessionController:
    """Create a page, wrap it in a controller and run ``init`` on it."""
    viewport = (
        {"width": config.window_size.width, "height": config.window_size.height}
        if config.window_size else DEFAULT_VIEWPORT
    )
    context = await browser.new_context(viewport=viewport)
    page = await context.new_page()

    session = PlaywrightSession(page)
    controller = SessionController(config, browser_id, session, version=browser.version, emitter=emitter)
    session_id = uuid.uuid4().hex
    logger.debug("Opening session %s for %s", session_id, browser_id)
    return await controller.init(session_id, calibrator)
