"""Client bridge: helper script injected into the page under test.

The script exposes ``prepareScreenshot`` (capture area, ignore areas and
viewport geometry for a set of selectors) and ``resetZoom``. Calls go through
the session controller's ``eval_script`` so they obey the broken-session rules.
When a navigation drops the namespace, the script is injected again and the
call retried once.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from src.models.assert_view import Calibration

if TYPE_CHECKING:
    from src.session.controller import SessionController

logger = logging.getLogger(__name__)

NAMESPACE = "__visualSession__"

_CLIENT_SCRIPT = """
(function (calibration) {
    function rectOf(el) {
        var r = el.getBoundingClientRect();
        return {
            top: r.top + window.pageYOffset,
            left: r.left + window.pageXOffset,
            width: r.width,
            height: r.height
        };
    }

    function union(rects) {
        var top = Infinity, left = Infinity, bottom = -Infinity, right = -Infinity;
        rects.forEach(function (r) {
            top = Math.min(top, r.top);
            left = Math.min(left, r.left);
            bottom = Math.max(bottom, r.top + r.height);
            right = Math.max(right, r.left + r.width);
        });
        return {top: top, left: left, width: right - left, height: bottom - top};
    }

    function collect(selectors) {
        var rects = [];
        selectors.forEach(function (selector) {
            document.querySelectorAll(selector).forEach(function (el) {
                var r = rectOf(el);
                if (r.width > 0 && r.height > 0) {
                    rects.push(r);
                }
            });
        });
        return rects;
    }

    function viewport() {
        return {
            top: window.pageYOffset,
            left: window.pageXOffset,
            width: document.documentElement.clientWidth || window.innerWidth,
            height: document.documentElement.clientHeight || window.innerHeight
        };
    }

    function canHaveCaret() {
        var el = document.activeElement;
        if (!el) {
            return false;
        }
        var tag = el.tagName.toLowerCase();
        return tag === 'textarea' || el.isContentEditable ||
            (tag === 'input' && ['text', 'search', 'email', 'password', 'url', 'tel', 'number'].indexOf(el.type) !== -1);
    }

    function prepareScreenshot(selectors, opts) {
        opts = opts || {};
        var captureArea;
        if (selectors.length) {
            var rects = collect(selectors);
            if (!rects.length) {
                return {error: 'NOTFOUND', message: 'Could not find elements with css selectors: ' + selectors.join(', ')};
            }
            captureArea = union(rects);
            if (opts.captureElementFromTop) {
                window.scrollTo(window.pageXOffset, captureArea.top);
            }
        }
        if (opts.selectorToScroll && !document.querySelector(opts.selectorToScroll)) {
            return {error: 'NOTFOUND', message: 'Could not find element to scroll with css selector: ' + opts.selectorToScroll};
        }

        var vp = viewport();
        captureArea = captureArea || vp;
        var outside = captureArea.top + captureArea.height > vp.top + vp.height ||
            captureArea.left + captureArea.width > vp.left + vp.width;
        if (outside && !opts.allowViewportOverflow && !opts.compositeImage) {
            return {error: 'OUTSIDE_OF_VIEWPORT', message: 'Can not capture element, because it is outside of viewport'};
        }

        return {
            captureArea: captureArea,
            ignoreAreas: collect(opts.ignoreSelectors || []),
            viewport: vp,
            documentHeight: document.documentElement.scrollHeight,
            documentWidth: document.documentElement.scrollWidth,
            canHaveCaret: canHaveCaret(),
            pixelRatio: opts.usePixelRatio === false ? 1 : (window.devicePixelRatio || 1),
            calibration: calibration
        };
    }

    function resetZoom() {
        var meta = document.querySelector('meta[name="viewport"]');
        if (!meta) {
            meta = document.createElement('meta');
            meta.name = 'viewport';
            (document.head || document.documentElement).appendChild(meta);
        }
        var original = meta.content;
        meta.content = 'width=device-width,initial-scale=1.0,user-scalable=no';
        meta.content = original;
        return {};
    }

    window.%(namespace)s = {prepareScreenshot: prepareScreenshot, resetZoom: resetZoom};
})(%(calibration)s);
"""


class ClientBridgeError(Exception):
    """The client script reported an error for a call."""

    def __init__(self, error_type: str, message: str):
        self.error_type = error_type
        super().__init__(
            f"Prepare screenshot failed with error type '{error_type}' and error message: {message}"
        )


class ClientBridge:
    def __init__(self, controller: "SessionController", script: str):
        self._controller = controller
        self.script = script

    @classmethod
    async def build(cls, controller: "SessionController", calibration: Calibration | None = None) -> "ClientBridge":
        calibration_json = json.dumps(calibration.model_dump() if calibration else None)
        script = _CLIENT_SCRIPT % {"namespace": NAMESPACE, "calibration": calibration_json}
        bridge = cls(controller, script)
        await bridge.inject()
        return bridge

    async def inject(self) -> None:
        await self._controller.inject_script(self.script)

    async def call(self, method: str, args: list[Any] | None = None) -> dict[str, Any]:
        result = await self._call(method, args or [])
        if isinstance(result, dict) and result.get("isClientScriptNotInjected"):
            logger.debug("Client script missing, injecting again before %s", method)
            await self.inject()
            result = await self._call(method, args or [])
        return result or {}

    async def _call(self, method: str, args: list[Any]) -> Any:
        expression = (
            f"typeof window.{NAMESPACE} === 'undefined'"
            f" ? {{isClientScriptNotInjected: true}}"
            f" : window.{NAMESPACE}.{method}.apply(null, {json.dumps(args)})"
        )
        return await self._controller.eval_script(expression)
