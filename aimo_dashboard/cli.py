"""One-shot poll of the upstream sources.

Runs a single tick of each selected source against a fresh state and prints
what came back.  Handy for checking credentials and upstream shapes.

Usage:
    python -m aimo_dashboard.cli
    python -m aimo_dashboard.cli --source calls --json
"""

import argparse
import asyncio
import json
import logging
import sys

from aimo_dashboard.polling.tasks import SOURCE_NAMES, build_scheduler
from aimo_dashboard.store.state import DashboardState

logging.basicConfig(
    level=logging.WARNING,
    format="%(levelname)s: %(message)s",
)


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="aimo-dashboard", description="Poll AIMO dashboard sources once.")
    parser.add_argument(
        "--source",
        action="append",
        choices=SOURCE_NAMES,
        help="Source to poll (repeatable). Defaults to all sources.",
    )
    parser.add_argument("--json", action="store_true", help="Print the resulting state as JSON")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable INFO logging")
    return parser.parse_args(argv)


async def run(sources: list[str], as_json: bool) -> int:
    state = DashboardState()
    scheduler = build_scheduler(state)
    errors = await scheduler.initial_load(sources)
    scheduler.stop()

    if as_json:
        snapshot = state.snapshot()
        snapshot["sources"] = [status.to_wire() for status in scheduler.statuses() if status.name in sources]
        print(json.dumps(snapshot, indent=2, ensure_ascii=False))
    else:
        for name in sources:
            status = scheduler.status(name)
            line = f"{name:<12} {status.state}"
            if status.last_error:
                line += f" ({status.last_error})"
            print(line)
        print()
        print(f"Predictions: {len(state.shortages)}")
        print(f"Observed shortages: {len(state.observed)}")
        print(f"Calls: {len(state.calls)}")

    return 1 if errors else 0


def main(argv: list[str] | None = None) -> None:
    args = _parse_args(argv)
    if args.verbose:
        logging.getLogger().setLevel(logging.INFO)
    sources: list[str] = list(dict.fromkeys(args.source or SOURCE_NAMES))
    sys.exit(asyncio.run(run(sources, args.json)))


if __name__ == "__main__":
    main()
