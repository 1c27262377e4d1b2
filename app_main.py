"""Application entry point for the live quiz server."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

import uvicorn

from quiz_live.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from quiz_live.constants.quiz_constants import QUIZ_GRACE_PERIOD_SECONDS
from quiz_live.core.quiz_importer import QuizImportError, load_quiz_from_file
from quiz_live.core.quiz_manager import QuizManager
from quiz_live.server.api_server import create_api_app
from quiz_live.utils.logging_config import configure_logging


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Serve scheduled live quizzes over HTTP.")
    parser.add_argument(
        "--quiz-file",
        type=Path,
        action="append",
        default=[],
        help="Quiz definition to load on startup (may be given several times)",
    )
    parser.add_argument("--host", default=DEFAULT_HOST, help="Interface to bind the API server to")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT, help="Port of the API server")
    parser.add_argument(
        "--grace-period",
        type=int,
        default=QUIZ_GRACE_PERIOD_SECONDS,
        help="Seconds after the due date during which live submissions are still accepted",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Initialize logging, load quizzes, arm their schedules and serve the API."""
    args = _parse_args(argv)
    logger = configure_logging(level=logging.DEBUG if args.debug else logging.INFO)
    logger.info("Starting live quiz server...")

    quiz_manager = QuizManager(grace_period_seconds=args.grace_period)
    quiz_manager.start()
    try:
        for quiz_file in args.quiz_file:
            try:
                imported = load_quiz_from_file(quiz_file)
            except (OSError, QuizImportError) as exc:
                logger.error("Could not load quiz file %s: %s", quiz_file, exc)
                return 1
            quiz_manager.load_quiz(imported.quiz)

        logger.info("API available at http://%s:%d/", args.host, args.port)
        uvicorn.run(create_api_app(quiz_manager), host=args.host, port=args.port, log_level="info")
    finally:
        quiz_manager.stop()
    return 0


if __name__ == "__main__":
    sys.exit(main())
