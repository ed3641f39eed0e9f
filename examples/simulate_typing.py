"""Minimal example that types into an in-memory editor and prints live findings."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from drejtshkruaj_sync import AnnotationEngine, BufferEditor, load_config
from drejtshkruaj_sync.models import CategoryCounts, EngineStatus


async def run() -> None:
    config = load_config(Path(__file__).with_name("example_config.yaml"))
    editor = BufferEditor()
    engine = AnnotationEngine(
        editor,
        config=config,
        on_counts=_print_counts,
        on_status=_print_status,
        on_unauthenticated=lambda: print(
            f"Not signed in; set {config.checker.token_env} and try again."
        ),
    )
    editor.on_change(engine.on_text_change)
    await engine.prime_usage()

    for word in ("Une ", "shkoj ", "ne ", "shtepi.\n", "Nesre ", "do ", "te ", "vij."):
        editor.insert_text(len(editor.get_text()), word)
        await asyncio.sleep(0.2)
    await engine.drain()

    for finding in engine.findings:
        print(
            f"{finding.offset:>4} {finding.surface_form!r:<12} "
            f"{finding.category.value:<12} {', '.join(engine.suggestions_for(finding))}"
        )
    await engine.aclose()


def _print_counts(counts: CategoryCounts) -> None:
    print("counts:", counts.to_dict())


def _print_status(status: EngineStatus) -> None:
    print("status:", status.value)


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    asyncio.run(run())


if __name__ == "__main__":
    main()
