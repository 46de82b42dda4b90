"""CLI entry point: run visual checkpoints against a page."""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path

import click
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Playwright, async_playwright
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from src.assertions.assert_view import AssertView
from src.assertions.errors import AssertViewError, ImageDiffError, NoRefImageError
from src.assertions.results import AssertViewResults
from src.events import Emitter, Events
from src.models.config import FrameworkConfig, RuntimeConfig
from src.session.calibrator import CalibrationError, Calibrator
from src.session.client_bridge import ClientBridgeError
from src.session.launcher import launch_browser, open_session

console = Console()
logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def parse_state(value: str) -> tuple[str, str | None]:
    """Split ``name=selector`` into its parts; a bare name captures the viewport."""
    name, sep, selector = value.partition("=")
    name = name.strip()
    if not name:
        raise click.BadParameter(f"State '{value}' has no name")
    return name, (selector.strip() or None) if sep else None


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """Visual checkpoints for long-lived browser sessions"""
    setup_logging(verbose)


@cli.command()
@click.option("--output", "-o", default="visual-config.json", help="Config file path")
def init(output: str) -> None:
    """Create a default configuration file."""
    config_path = Path(output)
    if config_path.exists():
        if not click.confirm(f"{config_path} already exists. Overwrite?"):
            return

    FrameworkConfig().save(config_path)
    console.print(f"[green]Created {config_path}[/green]")
    console.print("\nRun checkpoints with:")
    console.print('  [blue]visual-session check --url https://example.com --state header=".header"[/blue]')


@cli.command()
@click.option("--config", "-c", default="visual-config.json", help="Config file path")
@click.option("--url", "-u", required=True, help="Page to open (resolved against base_url)")
@click.option("--state", "-s", "states", multiple=True, required=True,
              help="Checkpoint as NAME or NAME=SELECTOR; repeatable")
@click.option("--browser", "-b", "browser_ids", multiple=True, help="Browser ids to run (default: all)")
@click.option("--update", is_flag=True, help="Save captures as new references")
def check(config: str, url: str, states: tuple[str, ...], browser_ids: tuple[str, ...], update: bool) -> None:
    """Open each browser, navigate to URL and assert every state."""
    try:
        cfg = FrameworkConfig.load(config)
    except FileNotFoundError:
        console.print(f"[red]Config file not found: {config}[/red]")
        console.print("Run 'visual-session init' to create a default config.")
        sys.exit(1)

    checkpoints = [parse_state(s) for s in states]
    runtime = RuntimeConfig(update_refs=update, record_successes=True)
    rows = asyncio.run(_run_checks(cfg, url, checkpoints, list(browser_ids) or list(cfg.browsers), runtime))

    table = Table(title="Visual checkpoints")
    table.add_column("Browser", style="bold")
    table.add_column("State")
    table.add_column("Result")
    table.add_column("Details")
    failed = False
    for browser_id, state, status, details in rows:
        color = {"pass": "green", "updated": "blue"}.get(status, "red")
        failed = failed or color == "red"
        table.add_row(browser_id, state, f"[{color}]{status}[/{color}]", details)
    console.print(table)

    if failed:
        sys.exit(1)


async def _run_checks(
    cfg: FrameworkConfig,
    url: str,
    checkpoints: list[tuple[str, str | None]],
    browser_ids: list[str],
    runtime: RuntimeConfig,
) -> list[tuple[str, str, str, str]]:
    rows: list[tuple[str, str, str, str]] = []
    async with async_playwright() as p:
        for browser_id in browser_ids:
            try:
                rows.extend(await _check_browser(p, cfg, browser_id, url, checkpoints, runtime))
            except (CalibrationError, PlaywrightError) as e:
                logger.error("Browser %s failed: %s", browser_id, e)
                rows.append((browser_id, "-", "error", str(e)))
    return rows


async def _check_browser(
    p: Playwright,
    cfg: FrameworkConfig,
    browser_id: str,
    url: str,
    checkpoints: list[tuple[str, str | None]],
    runtime: RuntimeConfig,
) -> list[tuple[str, str, str, str]]:
    browser_config = cfg.for_browser(browser_id)
    browser = await launch_browser(p, browser_config)
    emitter = Emitter()
    updated: list[str] = []
    emitter.on(Events.UPDATE_REFERENCE, lambda payload: updated.append(payload["state"]))
    rows: list[tuple[str, str, str, str]] = []
    assert_view = None
    try:
        controller = await open_session(browser, browser_id, browser_config, Calibrator(), emitter)
        results = AssertViewResults(record_successes=runtime.record_successes)
        assert_view = AssertView(controller, results, runtime)
        await controller.url(url)

        for state, selector in checkpoints:
            try:
                await assert_view(state, selector)
            except (AssertViewError, ClientBridgeError) as e:
                rows.append((browser_id, state, "error", str(e)))
            except PlaywrightError as e:
                logger.error("Browser %s failed on \"%s\": %s", browser_id, state, e)
                controller.mark_as_broken()
                rows.append((browser_id, state, "error", str(e)))

        rows.extend(_result_rows(browser_id, results, updated))
        await controller.end()
    finally:
        if assert_view is not None:
            assert_view.cleanup()
        await browser.close()
    return rows


def _result_rows(browser_id: str, results: AssertViewResults, updated: list[str]) -> list[tuple[str, str, str, str]]:
    rows = []
    for entry in results.get():
        if isinstance(entry, NoRefImageError):
            rows.append((browser_id, entry.state_name, "no reference", entry.ref_img.path))
        elif isinstance(entry, ImageDiffError):
            rows.append((browser_id, entry.state_name, "diff", str(entry.diff_bounds.model_dump() if entry.diff_bounds else "")))
        else:
            rows.append((browser_id, entry.state_name, "pass", entry.ref_img.path))
    rows.extend((browser_id, state, "updated", "") for state in updated)
    return rows


if __name__ == "__main__":
    cli()
