#!/usr/bin/env python3
# ============================================================================
# CLI RECIPE EXECUTION TOOL
# ============================================================================
# EPOCH: 1 - RECIPE ENGINE
# STATUS: Tool - Execute recipes over HTTP and poll for completion
# PURPOSE: Exercise the recipe engine without a UI
# CREATED: 19 OCT 2026
# ============================================================================
"""
Execute a recipe against a running recipe engine.

Usage:
    # Start and return immediately
    python -m client.cli persona_pipeline '{"audience": "urban cyclists", "count": 2}'

    # Poll for completion
    python -m client.cli persona_pipeline '{"audience": "gardeners"}' --poll

    # Attribute to a project
    python -m client.cli persona_pipeline '{}' --project-id proj-42 --poll
"""

import argparse
import json
import os
import sys

from core.config import get_defaults
from client.recipe_client import PollingTimeoutError, RecipeClient, RecipeClientError


def _print_poll(attempt: int, record: dict) -> None:
    done = len({r["node_id"] for r in record.get("action_results", [])})
    total = len(record.get("recipe_snapshot", {}).get("nodes", []))
    print(f"  [{attempt:3d}] {record['execution_id']} status={record['status']} nodes={done}/{total}")


def main(argv=None) -> int:
    polling = get_defaults().polling

    parser = argparse.ArgumentParser(
        description="Execute a recipe on the recipe engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s persona_pipeline '{"audience": "urban cyclists", "count": 2}'
  %(prog)s persona_pipeline '{"audience": "gardeners"}' --poll
        """,
    )
    parser.add_argument("recipe_id", help="Recipe ID to execute")
    parser.add_argument("params", nargs="?", default="{}", help="JSON external input")
    parser.add_argument("--project-id", help="Project attribution")
    parser.add_argument("--stage-id", help="Stage attribution")
    parser.add_argument("--triggered-by", default="cli", help="Caller identity (default: cli)")
    parser.add_argument("--version", type=int, help="Pin a recipe version")
    parser.add_argument("--poll", "-p", action="store_true", help="Poll until the execution settles")
    parser.add_argument(
        "--url", "-u",
        default=os.environ.get("RECIPE_ENGINE_URL", "http://localhost:8000"),
        help="Recipe engine base URL",
    )
    parser.add_argument(
        "--interval", type=float, default=polling.interval_seconds,
        help=f"Seconds between polls (default: {polling.interval_seconds})",
    )
    parser.add_argument(
        "--max-attempts", type=int, default=polling.max_attempts,
        help=f"Polls before giving up (default: {polling.max_attempts})",
    )
    args = parser.parse_args(argv)

    try:
        external_input = json.loads(args.params)
    except json.JSONDecodeError as e:
        print(f"ERROR: Invalid JSON params: {e}", file=sys.stderr)
        return 1

    print(f"Executing recipe:")
    print(f"  recipe:  {args.recipe_id}")
    print(f"  input:   {json.dumps(external_input)}")
    print(f"  engine:  {args.url}")
    print()

    with RecipeClient(args.url) as client:
        try:
            execution_id = client.execute(
                args.recipe_id,
                external_input,
                project_id=args.project_id,
                stage_id=args.stage_id,
                triggered_by=args.triggered_by,
                version=args.version,
            )
        except RecipeClientError as e:
            print(f"ERROR: {e}", file=sys.stderr)
            return 1

        print(f"Started execution {execution_id}")
        if not args.poll:
            return 0

        print(f"\nPolling every {args.interval}s (max {args.max_attempts} polls)...")
        try:
            record = client.wait_for_completion(
                execution_id,
                interval_seconds=args.interval,
                max_attempts=args.max_attempts,
                on_poll=_print_poll,
            )
        except PollingTimeoutError as e:
            print(f"\n{e}", file=sys.stderr)
            return 2
        except RecipeClientError as e:
            print(f"ERROR: {e}", file=sys.stderr)
            return 1

    print(f"\n--- FINAL RESULT ---")
    if record["status"] == "completed":
        print(json.dumps(record.get("result"), indent=2, default=str))
        return 0

    error = record.get("error") or {}
    print(f"FAILED at node {record.get('failed_node_id')}: [{error.get('kind')}] {error.get('message')}")
    return 1


if __name__ == "__main__":
    sys.exit(main())
