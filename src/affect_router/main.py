"""Application entrypoint — start the API server or run one-off commands."""

from __future__ import annotations

import argparse
import json
import sys

import uvicorn

from affect_router.config import get_settings
from affect_router.logger import setup_logging

_SCALARS = ("valence", "energy", "tension", "clarity", "control", "social")


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="affect-router",
        description="Adaptive evidence classification of self-reported state.",
    )
    sub = parser.add_subparsers(dest="command")

    # ── serve ─────────────────────────────────────────────────
    serve_parser = sub.add_parser("serve", help="Start the API server.")
    serve_parser.add_argument("--host", default=None)
    serve_parser.add_argument("--port", type=int, default=None)
    serve_parser.add_argument("--reload", action="store_true")

    # ── baseline ──────────────────────────────────────────────
    baseline_parser = sub.add_parser(
        "baseline", help="Classify six check-in ratings and print the decision as JSON."
    )
    for name in _SCALARS:
        baseline_parser.add_argument(f"--{name}", type=float, default=None)
    baseline_parser.add_argument(
        "--tag", dest="tags", action="append", default=[],
        help="Evidence tag for the refinement pass (repeatable).",
    )

    # ── validate ──────────────────────────────────────────────
    sub.add_parser("validate", help="Validate engine tables and the question bank.")

    args = parser.parse_args(argv)
    settings = get_settings()
    setup_logging(settings.log_level)

    if args.command == "serve":
        uvicorn.run(
            "affect_router.api.server:app",
            host=args.host or settings.api_host,
            port=args.port or settings.api_port,
            reload=args.reload,
        )
    elif args.command == "baseline":
        from affect_router.engine.baseline import classify_baseline
        from affect_router.engine.refine import refine
        from affect_router.models import BaselineScalars, StopReason

        config = settings.engine_config()
        scalars = BaselineScalars(**{name: getattr(args, name) for name in _SCALARS})
        decision = refine(
            classify_baseline(scalars, config), args.tags, config=config, stop_reason=StopReason.ONE_SHOT
        )
        print(json.dumps(decision.model_dump(mode="json"), indent=2))
    elif args.command == "validate":
        from affect_router.engine.question_bank import DEFAULT_QUESTIONS, load_question_bank
        from affect_router.engine.validation import (
            ConfigurationError,
            validate_question_bank,
            validate_tables,
        )

        try:
            validate_tables()
            questions = (
                load_question_bank(settings.question_bank_path)
                if settings.question_bank_path is not None
                else list(DEFAULT_QUESTIONS)
            )
            warnings = validate_question_bank(questions)
        except ConfigurationError as exc:
            for error in exc.errors:
                print(f"error: {error}")
            sys.exit(1)
        for warning in warnings:
            print(f"warning: {warning}")
        print(f"OK: {len(questions)} questions, {len(warnings)} warnings.")
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
