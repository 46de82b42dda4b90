"""Session controller: owns one protocol session for the lifetime of a browser.

The controller wraps a bare ``ProtocolSession`` with the behaviour a test run
relies on: meta storage, navigation side effects, a one-off calibration, the
injected client bridge and a broken state in which commands become no-ops.
"""

from __future__ import annotations

import asyncio
import functools
import inspect
import json
import logging
import os
from enum import Enum
from typing import Any, Optional
from urllib.parse import urljoin

from pydantic.alias_generators import to_camel

from src.events import Emitter, Events
from src.models.assert_view import Calibration, PageMeta
from src.models.config import BrowserConfig
from src.session.camera import Camera
from src.session.client_bridge import ClientBridge, ClientBridgeError
from src.session.image import Image
from src.session.protocol import ProtocolSession

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    READY = "ready"
    BROKEN = "broken"


def skip_when_broken(method):
    """Turn a command into a no-op returning None once the session is broken."""
    if inspect.iscoroutinefunction(method):
        @functools.wraps(method)
        async def async_wrapper(self: "SessionController", *args, **kwargs):
            if self.is_broken:
                logger.debug("Session %s is broken, skipping %s", self.id, method.__name__)
                return None
            self._command_history.append(method.__name__)
            return await method(self, *args, **kwargs)
        return async_wrapper

    @functools.wraps(method)
    def wrapper(self: "SessionController", *args, **kwargs):
        if self.is_broken:
            logger.debug("Session %s is broken, skipping %s", self.id, method.__name__)
            return None
        self._command_history.append(method.__name__)
        return method(self, *args, **kwargs)
    return wrapper


class SessionController:
    """Decorated command surface over one protocol session."""

    def __init__(
        self,
        config: BrowserConfig,
        browser_id: str,
        session: ProtocolSession,
        version: str = "",
        emitter: Emitter | None = None,
    ):
        self.config = config
        self.id = browser_id
        self.version = version
        self.session_id: Optional[str] = None

        self._session = session
        self._emitter = emitter or Emitter()
        self._state = SessionState.READY
        self._meta = self._init_meta()
        self._calibration: Calibration | None = None
        self._calibration_lock = asyncio.Lock()
        self._client_bridge: ClientBridge | None = None
        self._http_timeout = config.http_timeout
        self._http_timeout_stack: list[Optional[int]] = []
        self._command_history: list[str] = []
        self._camera = Camera(config.screenshot_mode, self._take_screenshot)

    def _init_meta(self) -> dict[str, Any]:
        return {
            "pid": os.getpid(),
            "browser_version": self.version,
            "browser_id": self.id,
            **self.config.meta,
        }

    async def _take_screenshot(self) -> bytes:
        return await self._session.screenshot()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def init(self, session_id: str, calibrator) -> "SessionController":
        """Attach to ``session_id``, calibrate once and inject client scripts."""
        try:
            if self.config.prepare_browser:
                self.config.prepare_browser(self)
        except Exception as e:
            logger.warning("Couldn't prepare browser %s: %s", self.id, e, exc_info=True)

        await self._prepare_session(session_id)
        await self._perform_calibration(calibrator)
        await self._build_client_scripts()

        logger.info("Session %s ready for browser %s", session_id, self.id)
        return self

    async def reinit(self, session_id: str, extended_options: dict[str, Any] | None = None) -> "SessionController":
        """Re-attach to a new protocol session, keeping calibration and bridge."""
        self._session.extend_options(extended_options or {})
        await self._prepare_session(session_id)

        logger.info("Session %s reattached for browser %s", session_id, self.id)
        return self

    async def _prepare_session(self, session_id: str) -> None:
        self._attach(session_id)
        self._session.set_timeout(self._http_timeout)
        if self.config.orientation:
            await self._session.set_orientation(self.config.orientation)
        if self.config.window_size:
            await self._session.resize(self.config.window_size.width, self.config.window_size.height)

    def _attach(self, session_id: str) -> None:
        self.session_id = session_id

    async def _perform_calibration(self, calibrator) -> None:
        if not self.config.calibrate or self._calibration:
            return

        async with self._calibration_lock:
            if self._calibration:
                return
            calibration = await calibrator.calibrate(self)
            self._calibration = calibration
            self._camera.calibrate(calibration)

    async def _build_client_scripts(self) -> None:
        self._client_bridge = await ClientBridge.build(self, self._calibration)

    def mark_as_broken(self) -> None:
        if self.is_broken:
            return
        logger.warning("Marking session %s (%s) as broken", self.session_id, self.id)
        self._state = SessionState.BROKEN
        self._emitter.emit(Events.SESSION_BROKEN, {"browser_id": self.id, "session_id": self.session_id})

    def quit(self) -> None:
        """Detach and reset per-session state so the controller can be reused."""
        self.session_id = None
        self._command_history.clear()
        self._http_timeout_stack.clear()
        self._http_timeout = self.config.http_timeout
        self._meta = self._init_meta()
        self._state = SessionState.READY

    async def end(self) -> None:
        await self._session.close()
        self.quit()

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    @skip_when_broken
    def set_meta(self, key: str, value: Any) -> None:
        self._meta[key] = value

    @skip_when_broken
    def get_meta(self, key: str | None = None) -> Any:
        return self._meta.get(key) if key else self._meta

    @skip_when_broken
    async def url(self, uri: str | None = None) -> Any:
        """Navigate to ``uri`` resolved against base_url; without it, read the current URL."""
        if not uri:
            return await self._session.navigate()

        new_uri = self._resolve_url(uri)
        self._meta["url"] = new_uri

        timeout = self.config.url_http_timeout
        if timeout:
            self.set_http_timeout(timeout)
        try:
            result = await self._session.navigate(new_uri)
        finally:
            if timeout:
                self.restore_http_timeout()

        if self._client_bridge:
            await self._client_bridge.call("resetZoom")
        return result

    async def open(self, url: str) -> Any:
        return await self.url(url)

    def _resolve_url(self, uri: str) -> str:
        return urljoin(self.config.base_url, uri) if self.config.base_url else uri

    def set_http_timeout(self, timeout_ms: Optional[int]) -> None:
        self._http_timeout_stack.append(self._http_timeout)
        self._http_timeout = timeout_ms
        self._session.set_timeout(timeout_ms)

    def restore_http_timeout(self) -> None:
        if not self._http_timeout_stack:
            return
        self._http_timeout = self._http_timeout_stack.pop()
        self._session.set_timeout(self._http_timeout)

    @skip_when_broken
    async def eval_script(self, expression: str) -> Any:
        return await self._session.execute(f"return {expression}")

    @skip_when_broken
    async def inject_script(self, script: str) -> Any:
        return await self._session.execute(script)

    @skip_when_broken
    async def scroll_by(self, x: float, y: float, selector: str | None = None) -> Any:
        if selector:
            script = (
                f"var el = document.querySelector({json.dumps(selector)});"
                f" return el ? el.scrollBy({x}, {y}) : null;"
            )
        else:
            script = f"return window.scrollTo(window.pageXOffset+{x}, window.pageYOffset+{y});"
        return await self._session.execute(script)

    @skip_when_broken
    async def prepare_screenshot(self, selectors: list[str], opts: dict[str, Any] | None = None) -> PageMeta:
        if self._client_bridge is None:
            raise RuntimeError(f"Client scripts for {self.id} are not built, call init() first")

        opts = dict(opts or {})
        if opts.get("use_pixel_ratio") is None:
            opts["use_pixel_ratio"] = self._calibration.use_pixel_ratio if self._calibration else True
        client_opts = {to_camel(key): value for key, value in opts.items()}

        result = await self._client_bridge.call("prepareScreenshot", [selectors, client_opts])
        if result.get("error"):
            raise ClientBridgeError(result["error"], result.get("message", ""))
        return PageMeta.model_validate(result)

    @skip_when_broken
    async def capture_viewport_image(self, page: PageMeta | None = None, delay_ms: int | None = None) -> Image:
        if delay_ms:
            await asyncio.sleep(delay_ms / 1000)
        return await self._camera.capture_viewport_image(page)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_broken(self) -> bool:
        return self._state is SessionState.BROKEN

    @property
    def meta(self) -> dict[str, Any]:
        return self._meta

    @property
    def emitter(self) -> Emitter:
        return self._emitter

    @property
    def calibration(self) -> Calibration | None:
        return self._calibration

    @property
    def client_bridge(self) -> ClientBridge | None:
        return self._client_bridge

    @property
    def camera(self) -> Camera:
        return self._camera

    @property
    def command_history(self) -> list[str]:
        return list(self._command_history)
