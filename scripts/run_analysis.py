"""
Run engine analyses from a JSON payload.

Payload shape:
    {
        "request": {"analysis_type": "forecast", "filters": {...}},
        "dataset": {"records": [...], "stock_levels": {...}, "recipe_snapshots": [...]}
    }

"requests" (a list) may be given instead of "request" to run several
analyses over the same dataset.

Usage:
    python scripts/run_analysis.py payload.json
    cat payload.json | python scripts/run_analysis.py -
    python scripts/run_analysis.py payload.json --output result.json --log-level DEBUG
"""

import argparse
import json
import os
import sys

# Allow imports from the project root when running as a script
_root_dir = os.path.join(os.path.dirname(__file__), "..")
sys.path.insert(0, _root_dir)

from dotenv import load_dotenv
load_dotenv(os.path.join(_root_dir, ".env"))

import structlog

from config import configure_logging, get_settings
from models import AnalysisRequest, AnalyticsDataset
from services import AnalyticsEngine

logger = structlog.get_logger(__name__)


def load_payload(path: str) -> dict:
    """Read the JSON payload from a file, or stdin when path is '-'."""
    if path == "-":
        return json.load(sys.stdin)
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def parse_payload(payload: dict):
    """Validate payload into (requests, dataset)."""
    if "requests" in payload:
        raw_requests = payload["requests"]
    elif "request" in payload:
        raw_requests = [payload["request"]]
    else:
        raise ValueError("payload needs a 'request' or 'requests' key")

    requests = [AnalysisRequest.model_validate(r) for r in raw_requests]
    dataset = AnalyticsDataset.model_validate(payload.get("dataset", {}))
    return requests, dataset


def main():
    parser = argparse.ArgumentParser(
        description="Run analytics engine analyses over a JSON dataset",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/run_analysis.py payload.json                  # Print response JSON
  python scripts/run_analysis.py - < payload.json              # Read from stdin
  python scripts/run_analysis.py payload.json -o result.json   # Write to a file
        """
    )
    parser.add_argument(
        "payload",
        help="Path to the JSON payload, or '-' for stdin"
    )
    parser.add_argument(
        "--output", "-o",
        default=None,
        help="Write the response JSON here instead of stdout"
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Override LOG_LEVEL (DEBUG, INFO, WARNING, ERROR)"
    )

    args = parser.parse_args()

    app_settings = get_settings()
    if args.log_level:
        app_settings = app_settings.model_copy(update={"log_level": args.log_level.upper()})
    configure_logging(app_settings)

    try:
        requests, dataset = parse_payload(load_payload(args.payload))
    except (OSError, ValueError) as e:
        logger.error("payload_invalid", path=args.payload, error=str(e))
        print(f"Error: invalid payload: {e}", file=sys.stderr)
        sys.exit(2)

    engine = AnalyticsEngine(app_settings)
    responses = engine.run_batch(requests, dataset)

    body = [r.to_dict() for r in responses]
    output = json.dumps(body[0] if len(body) == 1 else body, indent=2)

    if args.output:
        with open(args.output, "w", encoding="utf-8") as f:
            f.write(output + "\n")
    else:
        print(output)

    sys.exit(0 if all(r.success for r in responses) else 1)


if __name__ == "__main__":
    main()
