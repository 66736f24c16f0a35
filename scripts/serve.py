"""Run the untis-watch service, or fetch the timetable once.

Reads WebUntis credentials and service settings from the environment / .env
(UNTIS_HOST, UNTIS_SCHOOL, UNTIS_USER, UNTIS_PASSWORD, ...).

Run with:  python scripts/serve.py
Port:      python scripts/serve.py --port 8080
Once:      python scripts/serve.py --once
Speakable: python scripts/serve.py --once --speakable

Exit codes:
  0 = success (service stopped cleanly, or --once output on stdout)
  1 = error (message on stderr)
"""

import argparse
import asyncio
import sys
from datetime import date

import uvicorn
from dotenv import load_dotenv

load_dotenv()

from untis_watch.api import create_app  # noqa: E402
from untis_watch.config import get_config  # noqa: E402
from untis_watch.differ import compute_diff  # noqa: E402
from untis_watch.errors import UntisWatchError  # noqa: E402
from untis_watch.fetcher import UntisFetcher  # noqa: E402
from untis_watch.logging import setup_logging  # noqa: E402
from untis_watch.speakable import speakable_summary  # noqa: E402


def _parse_args() -> argparse.Namespace:
    """Parse CLI arguments using argparse."""
    parser = argparse.ArgumentParser(
        description="Track WebUntis timetable changes and serve them over HTTP.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--host", help="Bind address (overrides LISTEN_HOST)")
    parser.add_argument("--port", type=int, help="Bind port (overrides LISTEN_PORT)")
    parser.add_argument(
        "--once",
        action="store_true",
        help="Fetch the timetable once, print it as JSON and exit",
    )
    parser.add_argument(
        "--speakable",
        action="store_true",
        help="With --once: print today's changes as German sentences instead of JSON",
    )
    return parser.parse_args()


async def fetch_once(speakable: bool) -> str:
    config = get_config()
    fetcher = UntisFetcher(config)
    try:
        await fetcher.preflight()
        snapshot = await asyncio.wait_for(
            fetcher.fetch_timetable(), timeout=config.fetch_timeout_seconds
        )
    finally:
        fetcher.close()
    if speakable:
        return speakable_summary(snapshot, date.today())
    diff = compute_diff(None, snapshot, config.comparison_policy())
    return diff.model_dump_json(indent=2)


def main(args: argparse.Namespace) -> None:
    config = get_config()
    setup_logging(json_output=config.log_json, log_level=config.log_level)

    if args.once:
        print(asyncio.run(fetch_once(args.speakable)))
        return

    uvicorn.run(
        create_app(config),
        host=args.host or config.listen_host,
        port=args.port or config.listen_port,
        log_config=None,
    )


if __name__ == "__main__":
    args = _parse_args()
    try:
        main(args)
    except (UntisWatchError, ValueError, TimeoutError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)
