"""
Headless runner for the cover enrichment pipeline.

    python run_backend.py games.csv -o games_enriched.csv [--config config.yaml]
                          [--non-interactive] [--notify] [-v]

Ambiguous matches are resolved with terminal prompts, or skipped with
--non-interactive. Ctrl+C stops the run and still exports what was found.
"""
import argparse
import sys
from pathlib import Path
from typing import Callable, Optional, Tuple

from activity_log import ActivityLog, emit_log
from app_config import load_config, step_delay_seconds
from app_paths import get_config_path, get_default_export_path
from csv_io import load_games_csv, write_export_csv
from disambiguation import DisambiguationBroker
from enrichment_engine import EnrichmentEngine
from errors import CoverToolError, ProviderError
from game_models import ItemStatus, RunMode
from notifications import WhatsAppNotifier
from providers import build_providers
from translation import DescriptionTranslator

# Covers listed per candidate in the terminal
MAX_CONSOLE_COVERS = 10


# ==========================
# Disambiguation front ends
# ==========================
def skip_resolver(broker: DisambiguationBroker) -> None:
    broker.skip()


def console_resolver(broker: DisambiguationBroker, input_fn: Callable[[str], str] = input,
                     output_fn: Callable[[str], None] = print) -> None:
    """
    Resolve one ambiguity with terminal prompts.

    number = candidate (then a cover number), u = manual cover URL,
    s = skip this game, q = stop the run.
    """
    item = broker.item
    provider = broker.provider
    source = provider.display_name if provider is not None else broker.provider_id
    output_fn("")
    output_fn(f"? No exact match for '{item.name}' on {source}. Similar games:")
    for n, cand in enumerate(broker.candidates, start=1):
        year = f" ({cand.year})" if cand.year else ""
        output_fn(f"  {n}. {cand.display_name}{year}")
    output_fn("  u. enter a cover URL   s. skip   q. stop run")
    search_url = broker.search_url()
    if search_url:
        output_fn(f"  Browse: {search_url}")

    while True:
        choice = input_fn("Select: ").strip().lower()
        if choice == "s":
            broker.skip()
            return
        if choice == "q":
            broker.stop_run()
            return
        if choice == "u":
            url = input_fn("Cover URL: ").strip()
            if url:
                broker.manual_url(url)
                return
            continue
        if not (choice.isdigit() and 1 <= int(choice) <= len(broker.candidates)):
            output_fn("  Invalid choice")
            continue

        cand = broker.candidates[int(choice) - 1]
        try:
            detail = broker.load_candidate(cand.id)
        except ProviderError as e:
            output_fn(f"  ✗ {e}")
            continue

        if not detail.covers:
            if detail.metadata is not None:
                broker.select_cover(None, detail.metadata)
                return
            output_fn("  No covers for this game")
            continue

        covers = detail.covers[:MAX_CONSOLE_COVERS]
        for n, cover in enumerate(covers, start=1):
            style = f" {cover.style}" if cover.style else ""
            output_fn(f"    {n}. {cover.dimensions} score {cover.score:g}{style}  {cover.full_url}")
        pick = input_fn("Cover number (Enter = 1, b = back): ").strip().lower()
        if pick == "b":
            continue
        index = 1 if pick == "" else int(pick) if pick.isdigit() else 0
        if not 1 <= index <= len(covers):
            output_fn("  Invalid choice")
            continue
        broker.select_cover(covers[index - 1], detail.metadata)
        return


# ==========================
# Runner
# ==========================
def run_enrichment(
    config_path: Optional[Path],
    input_csv: Path,
    output_csv: Path,
    callbacks=None,
    resolver: Optional[Callable[[DisambiguationBroker], None]] = None,
    notify: bool = False,
    opener: Optional[Callable[[str], object]] = None,
) -> Tuple[bool, str]:
    """
    Load a game list, enrich it, export it.

    Args:
        config_path: config.yaml (None or missing file -> defaults).
        input_csv: Game list to enrich.
        output_csv: Export destination.
        callbacks: dict with optional log/progress/... callables.
        resolver: Called with a DisambiguationBroker for every ambiguity.
            Defaults to skipping.
        notify: Send completed games to WhatsApp after export.
        opener: URL opener for notifications (webbrowser.open by default).

    Returns:
        (ok, message)
    """
    try:
        cfg = load_config(config_path)
        items = load_games_csv(input_csv)
        providers = build_providers(cfg, callbacks)
        translator = DescriptionTranslator.from_config(cfg, callbacks)
        step_delay = step_delay_seconds(cfg)
    except CoverToolError as e:
        return False, str(e)

    engine_callbacks = dict(callbacks or {})
    engine_callbacks["request_disambiguation"] = resolver or skip_resolver
    engine = EnrichmentEngine(providers, step_delay=step_delay, callbacks=engine_callbacks, translator=translator)

    try:
        engine.start(items)
    except CoverToolError as e:
        return False, str(e)

    try:
        mode = engine.run()
        # A resolver that failed leaves the selection open; skip it and carry on
        while mode == RunMode.AWAITING_DISAMBIGUATION:
            broker = engine.broker()
            if broker is not None:
                broker.skip()
            mode = engine.run()
    except KeyboardInterrupt:
        emit_log(callbacks, "[INFO] Interrupted")
        if engine.run_mode not in (RunMode.IDLE, RunMode.STOPPED):
            engine.stop()

    results = engine.results()
    try:
        count = write_export_csv(results, output_csv)
    except OSError as e:
        return False, f"Failed to write {output_csv}: {e}"
    emit_log(callbacks, f"[INFO] Exported {count} games to {output_csv}")

    if notify:
        kwargs = {"opener": opener} if opener is not None else {}
        WhatsAppNotifier.from_config(cfg, callbacks, **kwargs).send_all(results, wait=True)

    done = sum(1 for item in results if item.status == ItemStatus.COMPLETED)
    if engine.run_mode == RunMode.STOPPED:
        return True, f"Stopped. {done}/{count} games enriched, partial result exported to {output_csv}"
    return True, f"Finished. {done}/{count} games enriched, exported to {output_csv}"


# ==========================
# CLI
# ==========================
def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="run_backend.py",
        description="Find cover art, release year and description for a CSV list of games",
    )
    parser.add_argument("input", help="CSV with a Name (or Nombre) column")
    parser.add_argument("-o", "--output", help="Export path (default: <input>_enriched.csv)")
    parser.add_argument("--config", help=f"config.yaml path (default: {get_config_path()})")
    parser.add_argument("--non-interactive", action="store_true",
                        help="Skip games without an exact match instead of asking")
    parser.add_argument("--notify", action="store_true",
                        help="Open a WhatsApp message for every completed game after export")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show [DEBUG] lines")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    input_csv = Path(args.input)
    output_csv = Path(args.output) if args.output else get_default_export_path(input_csv)
    config_path = Path(args.config) if args.config else get_config_path()

    log = ActivityLog(echo=print)

    def _log(msg: str):
        if args.verbose or not msg.startswith("[DEBUG]"):
            log.add(msg)

    callbacks = {"log": _log}
    resolver = skip_resolver if args.non_interactive else console_resolver
    ok, msg = run_enrichment(config_path, input_csv, output_csv, callbacks=callbacks,
                             resolver=resolver, notify=args.notify)
    print(msg)
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
