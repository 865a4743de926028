"""Run registered registry repair tasks from the command line and print their tallies."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Optional

from channel_registry.errors import NotFoundError
from channel_registry.logging_config import configure_logging
from channel_registry.repairs import available_repairs, pipeline_order, run_pipeline

logger = logging.getLogger("channel_registry.repairs.cli")


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Repair username registry drift.")
    parser.add_argument(
        "tasks",
        nargs="*",
        help=f"Task names to run in the given order (default: full pipeline {', '.join(pipeline_order())}).",
    )
    parser.add_argument("--list", action="store_true", help="List registered tasks and exit.")
    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> int:
    configure_logging()
    args = parse_args(argv)
    if args.list:
        for task in available_repairs():
            print(f"{task.name}\t{task.description}")
        return 0
    try:
        tallies = run_pipeline(args.tasks or None)
    except NotFoundError as exc:
        logger.error("%s", exc.message)
        return 2
    print(json.dumps([tally.model_dump(mode="json", by_alias=True) for tally in tallies], indent=2))
    return 1 if any(tally.errors for tally in tallies) else 0


if __name__ == "__main__":
    sys.exit(main())
