"""CLI interface for hotkeytranslator using Typer."""

from __future__ import annotations

import asyncio
import logging
import sys
import threading
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from hotkeytranslator import __version__
from hotkeytranslator.config import ConfigError, Settings
from hotkeytranslator.translators.roster import TranslatorRoster

app = typer.Typer(
    name="hotkeytranslator",
    help="Translate the current selection with several providers at once.",
    add_completion=False,
)
console = Console()

_verbose = False
_quiet = False


def _print(msg: str, *, verbose_only: bool = False) -> None:
    """Print respecting --verbose/--quiet flags. Errors bypass --quiet."""
    if _quiet:
        return
    if verbose_only and not _verbose:
        return
    console.print(msg)


def configure_logging(verbose: bool = False, quiet: bool = False) -> None:
    """Route log records through rich, on stderr."""
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    else:
        level = logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _load_settings(config: Path | None) -> Settings:
    from hotkeytranslator.config import load_settings

    try:
        return load_settings(config)
    except ConfigError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e


@asynccontextmanager
async def _open_roster(
    settings: Settings,
    *,
    api_key: str | None,
    use_dummy: bool,
) -> AsyncIterator[TranslatorRoster]:
    """Yield the roster to use, keeping its HTTP sessions open meanwhile."""
    from hotkeytranslator.config import resolve_api_key
    from hotkeytranslator.translators.roster import (
        build_dummy_roster,
        build_roster,
        open_http_sessions,
    )

    if use_dummy:
        yield build_dummy_roster(settings)
        return

    key = resolve_api_key(settings, api_key)
    if key is None:
        _print("[yellow]Warning:[/yellow] no OpenRouter API key; chat models will be skipped.")
    async with open_http_sessions(settings) as sessions:
        yield build_roster(settings, sessions, api_key=key)


def version_callback(value: bool) -> None:
    if value:
        console.print(f"hotkeytranslator {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v",
        help="Show debug logs (HTTP requests and responses).",
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Only show errors.",
    ),
) -> None:
    """hotkeytranslator: race several translators on the selected text."""
    global _verbose, _quiet
    _verbose = verbose
    _quiet = quiet
    configure_logging(verbose=verbose, quiet=quiet)


_CONFIG_OPTION = typer.Option(
    None, "--config", "-c",
    help="Path to translators.toml (default: search cwd and parents).",
)
_API_KEY_OPTION = typer.Option(
    None, "--api-key", "-k",
    envvar="OPENROUTER_API_KEY", help="OpenRouter API key.",
)
_DUMMY_OPTION = typer.Option(
    False, "--dummy",
    help="Use offline dummy translators with the configured names.",
)


@app.command()
def translate(
    text: str = typer.Argument(..., help="Text to translate."),
    config: Path | None = _CONFIG_OPTION,
    api_key: str | None = _API_KEY_OPTION,
    use_dummy: bool = _DUMMY_OPTION,
) -> None:
    """Translate TEXT once and print every provider's result."""
    if not text.strip():
        console.print("[red]Error:[/red] Nothing to translate.")
        raise typer.Exit(1)

    settings = _load_settings(config)
    result = asyncio.run(_translate_once(text, settings, api_key=api_key, use_dummy=use_dummy))
    if result is None:
        console.print("[yellow]No primary translator produced a result.[/yellow]")
        raise typer.Exit(1)
    _print(f"\n[green]Clipboard:[/green] {escape(result)}")


async def _translate_once(
    text: str,
    settings: Settings,
    *,
    api_key: str | None,
    use_dummy: bool,
) -> str | None:
    from hotkeytranslator.capture import MemoryClipboard, SelectionCapture
    from hotkeytranslator.display import ConsoleDisplaySink
    from hotkeytranslator.orchestrator import SessionOrchestrator

    clipboard = MemoryClipboard(text)
    async with _open_roster(settings, api_key=api_key, use_dummy=use_dummy) as roster:
        orchestrator = SessionOrchestrator(
            capture=SelectionCapture(copy_delay=0),
            clipboard=clipboard,
            roster=roster,
            display=ConsoleDisplaySink(console),
        )
        await orchestrator.handle_trigger()
        await orchestrator.drain()
    return clipboard.writes[-1] if clipboard.writes else None


@app.command()
def listen(
    config: Path | None = _CONFIG_OPTION,
    api_key: str | None = _API_KEY_OPTION,
    use_dummy: bool = _DUMMY_OPTION,
    use_pipe: bool = typer.Option(
        False, "--pipe/--console",
        help="Send results to the overlay's named pipe instead of the terminal.",
    ),
) -> None:
    """Translate the clipboard each time Enter is pressed (Ctrl+D/Ctrl+Z to stop)."""
    settings = _load_settings(config)
    _print("Copy some text, then press [bold]Enter[/bold] to translate it.")
    try:
        asyncio.run(_listen(settings, api_key=api_key, use_dummy=use_dummy, use_pipe=use_pipe))
    except KeyboardInterrupt:
        pass
    _print("Stopped.")


async def _listen(
    settings: Settings,
    *,
    api_key: str | None,
    use_dummy: bool,
    use_pipe: bool,
) -> None:
    from hotkeytranslator.cancel import SHUTDOWN, CancelScope
    from hotkeytranslator.capture import SelectionCapture, SimulationGuard, SystemClipboard
    from hotkeytranslator.display import ConsoleDisplaySink, PipeDisplaySink
    from hotkeytranslator.orchestrator import SessionOrchestrator

    loop = asyncio.get_running_loop()
    shutdown = CancelScope()
    stopped = asyncio.Event()
    guard = SimulationGuard()
    pipe = PipeDisplaySink(settings.display.pipe_name) if use_pipe else None
    display = pipe if pipe is not None else ConsoleDisplaySink(console)

    async with _open_roster(settings, api_key=api_key, use_dummy=use_dummy) as roster:
        orchestrator = SessionOrchestrator(
            capture=SelectionCapture(copy_delay=settings.capture.copy_delay),
            clipboard=SystemClipboard(),
            roster=roster,
            display=display,
            guard=guard,
        )

        def read_triggers() -> None:
            for _line in sys.stdin:
                if guard.suppressed:
                    continue
                asyncio.run_coroutine_threadsafe(orchestrator.handle_trigger(shutdown), loop)
            loop.call_soon_threadsafe(stopped.set)

        threading.Thread(target=read_triggers, name="trigger-reader", daemon=True).start()
        try:
            await stopped.wait()
        finally:
            shutdown.cancel(SHUTDOWN)
            await orchestrator.close()
            if pipe is not None:
                pipe.close()


@app.command()
def providers(config: Path | None = _CONFIG_OPTION) -> None:
    """Show the configured primary and variant translators."""
    from hotkeytranslator.translators.roster import build_dummy_roster

    settings = _load_settings(config)
    # Same names and roles as the real roster, without opening HTTP sessions.
    roster = build_dummy_roster(settings)

    table = Table(title="Translators")
    table.add_column("Role", style="cyan")
    table.add_column("Name", style="bold")
    table.add_column("Backend")

    for name in settings.gateway.engines:
        table.add_row("primary", name, f"gateway {settings.gateway.host}:{settings.gateway.port}")
    if settings.deepl.enabled:
        table.add_row("primary", "DeepL", f"deepl {settings.deepl.host}:{settings.deepl.port}")
    for model in settings.openrouter.models:
        flags = []
        if model.include_error_explanation:
            flags.append("explain")
        if model.strip_reasoning_tags:
            flags.append("strip-reasoning")
        suffix = f" ({', '.join(flags)})" if flags else ""
        table.add_row("variant", model.display_name, f"openrouter {model.model_id}{suffix}")

    console.print(table)
    _print(
        f"{len(roster.primary)} primary, {len(roster.variants)} variant translator(s)",
        verbose_only=True,
    )
    if settings.source is not None:
        _print(f"Config: [dim]{settings.source}[/dim]", verbose_only=True)


@app.command()
def check(config: Path | None = _CONFIG_OPTION) -> None:
    """Check that the local translation servers are alive."""
    settings = _load_settings(config)
    statuses = asyncio.run(_check(settings))

    table = Table(title="Translation servers")
    table.add_column("Server", style="bold")
    table.add_column("URL")
    table.add_column("Status")
    table.add_column("Detail")
    for status in statuses:
        state = "[green]alive[/green]" if status.alive else "[red]down[/red]"
        table.add_row(status.name, status.url, state, status.detail)
    console.print(table)

    if not all(status.alive for status in statuses):
        raise typer.Exit(1)


async def _check(settings: Settings):
    import aiohttp

    from hotkeytranslator.health import check_servers

    timeout = aiohttp.ClientTimeout(total=settings.gateway.timeout)
    async with aiohttp.ClientSession(timeout=timeout) as session:
        return await check_servers(settings, session)


if __name__ == "__main__":
    app()
