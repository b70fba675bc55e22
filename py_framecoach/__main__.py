"""
CLI entrypoint for the framecoach guidance engine.

Usage:
    python -m py_framecoach --stage replay --session SESSION.jsonl [options]
    python -m py_framecoach --stage validate --recommendation REC.json
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from py_framecoach.config import load_config
from py_framecoach.errors import RecommendationDecodeError
from py_framecoach.runner import load_recommendation_text, run_replay, validate_document


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Subject tracking and composition guidance engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Replay a recorded session with a recommendation applied up front
    python -m py_framecoach --stage replay --session take1.jsonl --recommendation rec.json

    # Write snapshots to a file instead of stdout
    python -m py_framecoach --stage replay --session take1.jsonl --output out/take1_guidance.jsonl

    # Check a recommendation document against the safety limits
    python -m py_framecoach --stage validate --recommendation rec.json
        """,
    )

    parser.add_argument(
        "--stage",
        choices=["replay", "validate"],
        default="replay",
        help="Operation to run (default: replay)",
    )

    parser.add_argument(
        "--session",
        type=Path,
        help="Recorded session (JSON Lines, one frame per line)",
    )

    parser.add_argument(
        "--recommendation",
        type=Path,
        help="Recommendation JSON document",
    )

    parser.add_argument(
        "--output",
        type=Path,
        help="Write snapshots here instead of stdout",
    )

    parser.add_argument(
        "--config",
        type=Path,
        help="Guidance config YAML (default: $FRAMECOACH_CONFIG or config/pipeline/guidance.yaml)",
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging",
    )

    args = parser.parse_args(argv)

    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logger = logging.getLogger("framecoach")
    logger.info(f"Stage: {args.stage}")

    try:
        config = load_config(args.config)

        if args.stage == "validate":
            if args.recommendation is None:
                parser.error("--stage validate requires --recommendation")
            report = validate_document(load_recommendation_text(args.recommendation), config.safety)
            print(json.dumps(report, indent=2, ensure_ascii=False))
            for warning in report["warnings"]:
                logger.warning(warning["message"])
        else:
            if args.session is None:
                parser.error("--stage replay requires --session")
            count = run_replay(args.session, config, args.recommendation, args.output)
            logger.info(f"Replayed {count} frames")

        return 0

    except FileNotFoundError as e:
        logger.error(f"File not found: {e}")
        return 1
    except RecommendationDecodeError as e:
        logger.error(f"Invalid recommendation: {e}")
        print(json.dumps(e.to_envelope(), indent=2), file=sys.stderr)
        return 1
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        return 1
    except Exception as e:
        logger.exception(f"Guidance run failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
