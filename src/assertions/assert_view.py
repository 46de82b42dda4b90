"""assertView: named visual checkpoints inside a test.

A checkpoint captures the current page (or the area of the given selectors)
and resolves it against a reference image. Missing references and mismatches
are recorded in the test's ``AssertViewResults`` and do not raise, so a test
can report every visual difference at once. Invalid calls, client-script
failures and failed reference updates do raise.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Awaitable, Callable

from src.assertions import update_refs
from src.assertions.errors import AssertViewError, ImageDiffError, NoRefImageError
from src.assertions.options import merge_assert_view_opts, normalize_selectors, prepare_opts
from src.assertions.results import AssertViewResults
from src.assertions.temp_store import TempStore
from src.models.assert_view import AssertViewSuccess, CompareOutcome, ImageDescriptor, PageMeta
from src.models.config import RuntimeConfig
from src.session.controller import SessionController
from src.session.image import Image
from src.session.screen_shooter import ScreenShooter

logger = logging.getLogger(__name__)

Comparator = Callable[[str, str, dict[str, Any]], Awaitable[CompareOutcome]]


class AssertView:
    """assertView bound to one session controller and one test's results log."""

    def __init__(
        self,
        controller: SessionController,
        results: AssertViewResults,
        runtime: RuntimeConfig | None = None,
        temp_store: TempStore | None = None,
        comparator: Comparator | None = None,
        screen_shooter: ScreenShooter | None = None,
    ):
        self._controller = controller
        self._config = controller.config
        self._results = results
        self._runtime = runtime or RuntimeConfig()
        self._temp = temp_store or TempStore(
            self._config.system.temp_dir,
            {**self._config.system.temp_opts, **self._runtime.temp_opts},
        )
        self._compare = comparator or Image.compare
        self._shooter = screen_shooter or ScreenShooter(controller)

    @property
    def results(self) -> AssertViewResults:
        return self._results

    @property
    def temp_store(self) -> TempStore:
        return self._temp

    def cleanup(self) -> None:
        """Remove the current captures written by this instance."""
        self._temp.cleanup()

    async def __call__(
        self,
        state_name: str,
        selectors: str | list[str] | None = None,
        opts: dict[str, Any] | None = None,
    ) -> None:
        if self._controller.is_broken:
            logger.debug("Session %s is broken, skipping assertView \"%s\"", self._controller.id, state_name)
            return

        if not state_name:
            raise AssertViewError("state name is required for assertView")
        if self._results.has_state(state_name):
            raise AssertViewError(f"duplicate name for \"{state_name}\" state")

        opts = merge_assert_view_opts(opts, self._config, self._controller.calibration)
        page = await self._controller.prepare_screenshot(normalize_selectors(selectors), prepare_opts(opts))

        ref_path = self._config.get_screenshot_path(self._controller.meta, state_name)
        ref_exists = Path(ref_path).exists()
        ref_img = ImageDescriptor(path=ref_path, size=Image.read_size(ref_path) if ref_exists else None)

        curr_img = await self._capture(page, opts)
        logger.debug("Captured \"%s\" to %s (%dx%d)", state_name, curr_img.path,
                     curr_img.size.width, curr_img.size.height)

        if not ref_exists:
            await self._handle_no_ref_image(state_name, curr_img, ref_img)
        else:
            await self._compare_with_reference(state_name, curr_img, ref_img, page, opts)

    async def _capture(self, page: PageMeta, opts: dict[str, Any]) -> ImageDescriptor:
        image = await self._shooter.capture(
            page,
            composite_image=opts.get("composite_image", False),
            screenshot_delay=opts.get("screenshot_delay"),
            allow_viewport_overflow=opts.get("allow_viewport_overflow", False),
            selector_to_scroll=opts.get("selector_to_scroll"),
        )
        curr_path = self._temp.path()
        image.save(curr_path)
        return ImageDescriptor(path=curr_path, size=image.get_size())

    async def _handle_no_ref_image(self, state_name: str, curr_img: ImageDescriptor, ref_img: ImageDescriptor) -> None:
        if self._runtime.update_refs:
            await update_refs.handle_no_ref_image(state_name, curr_img, ref_img, emitter=self._controller.emitter)
            self._results.mark_state(state_name)
            return

        logger.info("No reference image for \"%s\" at %s", state_name, ref_img.path)
        self._results.add(NoRefImageError.create(state_name, curr_img, ref_img))

    async def _compare_with_reference(
        self,
        state_name: str,
        curr_img: ImageDescriptor,
        ref_img: ImageDescriptor,
        page: PageMeta,
        opts: dict[str, Any],
    ) -> None:
        compare_opts = {
            "can_have_caret": page.can_have_caret,
            "pixel_ratio": page.pixel_ratio,
            "tolerance": opts.get("tolerance"),
            "antialiasing_tolerance": opts.get("antialiasing_tolerance"),
            "compare_opts": self._config.compare_opts,
            "ignore_areas": [r.model_dump() for r in ScreenShooter.ignore_rects(page)],
        }
        outcome = await self._compare(ref_img.path, curr_img.path, compare_opts)
        ref_img = ImageDescriptor(path=ref_img.path, size=outcome.ref_size or ref_img.size)

        if outcome.equal:
            self._results.add_success(AssertViewSuccess(state_name=state_name, ref_img=ref_img))
            return

        if self._runtime.update_refs:
            await update_refs.handle_image_diff(
                state_name, curr_img, ref_img,
                emitter=self._controller.emitter,
                **{**opts, "can_have_caret": page.can_have_caret, "pixel_ratio": page.pixel_ratio},
            )
            self._results.mark_state(state_name)
            return

        diff_opts = {
            "current": curr_img.path,
            "reference": ref_img.path,
            "diff_color": self._config.system.diff_color,
            "tolerance": compare_opts["tolerance"],
            "antialiasing_tolerance": compare_opts["antialiasing_tolerance"],
            "can_have_caret": page.can_have_caret,
            "pixel_ratio": page.pixel_ratio,
            "ignore_areas": compare_opts["ignore_areas"],
            **self._config.build_diff_opts,
        }
        logger.info("Images differ for \"%s\"", state_name)
        self._results.add(ImageDiffError.create(
            state_name, curr_img, ref_img, diff_opts,
            outcome.diff_bounds, outcome.diff_clusters, outcome.meta_info,
        ))
