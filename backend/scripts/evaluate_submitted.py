"""Evaluate one batch of submitted attempts and print a JSON summary.

Intended to run from a scheduler; attempts whose evaluator calls keep failing
stay SUBMITTED and are picked up by the next run.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Optional

from competency_engine.attempt_service import AttemptService
from competency_engine.attempt_store import attempt_store
from competency_engine.config import get_settings
from competency_engine.db.session import create_all
from competency_engine.evaluator import OpenAIRubricEvaluator
from competency_engine.logging_config import configure_logging
from competency_engine.telemetry_pipeline import install_event_pipeline

LOGGER = logging.getLogger("competency_engine.evaluate_submitted")


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Evaluate submitted assessment attempts.")
    parser.add_argument(
        "--batch-size",
        type=int,
        default=None,
        help="Maximum attempts to evaluate (default: COMPETENCY_BATCH_SIZE).",
    )
    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="Create missing tables before evaluating.",
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Override COMPETENCY_LOG_LEVEL for this run.",
    )
    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)
    try:
        settings = get_settings()
        if args.log_level:
            settings = settings.model_copy(update={"log_level": args.log_level})
        configure_logging(settings)
        if args.create_tables:
            create_all()
        install_event_pipeline(attempt_store)
        service = AttemptService(attempt_store, OpenAIRubricEvaluator(settings), settings)
        summary = asyncio.run(service.process_submitted_attempts(batch_size=args.batch_size))
    except Exception as exc:  # noqa: BLE001
        LOGGER.exception("Batch evaluation failed: %s", exc)
        return 1

    payload = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        **summary.model_dump(),
    }
    print(json.dumps(payload))
    return 0


if __name__ == "__main__":
    sys.exit(main())
