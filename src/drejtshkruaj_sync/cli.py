from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, List

import typer
import yaml

from .config import SyncConfig, load_config
from .engine import AnnotationEngine
from .host import BufferEditor
from .models import Finding
from .remote import CheckerClient, TokenCredentials

app = typer.Typer(help="Drejtshkruaj annotation sync CLI.", no_args_is_help=True)


@app.command()
def check(
    input_path: Path = typer.Option(
        ..., exists=True, readable=True, dir_okay=False, file_okay=True
    ),
    config: Path | None = typer.Option(None, "--config", "-c"),
    server: str | None = typer.Option(
        None, "--server", help="Override checker.base_url from the config."
    ),
    token: str | None = typer.Option(
        None, "--token", help="Bearer token for the checker (prefer the env var)."
    ),
    usage: bool = typer.Option(
        False, "--usage/--no-usage", help="Fetch daily token usage before checking."
    ),
    log_level: str = typer.Option("WARNING", "--log-level", help="Logging level."),
) -> None:
    """Check every paragraph of a text file and emit findings as JSON."""
    logging.basicConfig(level=log_level.upper())
    cfg = load_config(config)
    _apply_checker_overrides(cfg, server, token)
    text = _read_text(input_path)
    payload = asyncio.run(_run_check(cfg, text, usage))
    typer.echo(json.dumps(payload, indent=2, ensure_ascii=False))


@app.command("print-config")
def print_config() -> None:
    """Print the default configuration as YAML."""
    cfg = SyncConfig()
    typer.echo(yaml.safe_dump(cfg.to_dict(), sort_keys=False))


def main() -> None:
    app()


def _apply_checker_overrides(
    config: SyncConfig, server: str | None, token: str | None
) -> None:
    if server:
        config.checker.base_url = server
    if token:
        config.checker.token = token


def _read_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise typer.BadParameter(str(exc)) from exc


async def _run_check(config: SyncConfig, text: str, fetch_usage: bool) -> Dict[str, Any]:
    editor = BufferEditor(text)
    client = CheckerClient(config.checker, TokenCredentials.from_settings(config.checker))
    notices: List[str] = []
    engine = AnnotationEngine(
        editor,
        client,
        config,
        on_rate_limited=lambda retry_after: notices.append("rate-limited"),
        on_unauthenticated=lambda: notices.append("unauthenticated"),
    )
    editor.on_change(engine.on_text_change)
    try:
        if fetch_usage:
            await engine.prime_usage()
        engine.check_document()
        await engine.drain()
    finally:
        await engine.aclose()
    current_usage = engine.usage.usage
    return {
        "status": engine.status.value,
        "counts": engine.counts.to_dict(),
        "findings": [_finding_payload(f, text, config.max_suggestions) for f in engine.findings],
        "usage": current_usage.to_dict() if current_usage else None,
        "notices": notices,
    }


def _finding_payload(finding: Finding, text: str, max_suggestions: int) -> Dict[str, Any]:
    payload = asdict(finding)
    payload["category"] = finding.category.value
    payload["action"] = finding.action.value
    payload["suggestions"] = list(finding.top_suggestions(max_suggestions))
    payload["text"] = text[finding.offset : finding.end]
    return payload


if __name__ == "__main__":
    main()
