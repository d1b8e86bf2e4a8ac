"""Run one availability check from the command line.

Opens a browser on the booking page, waits for you to log in by hand,
checks the requested date / window / party size, and prints the result as
JSON on stdout.

Run with: python scripts/check_availability.py --date 2025-06-15
Lunch:    python scripts/check_availability.py --date 2025-06-15 --window lunch --guests 4
Alert:    python scripts/check_availability.py --date 2025-06-15 --notify

Exit codes:
  0 = check completed (available or not)
  1 = error (message on stderr)
"""

import argparse
import asyncio
import os
import sys
from datetime import date

from dotenv import load_dotenv

load_dotenv()

# Add project root to path for src imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from src.remyping.checker import AvailabilityChecker  # noqa: E402
from src.remyping.config import get_config  # noqa: E402
from src.remyping.logging import setup_logging  # noqa: E402
from src.remyping.models import TimeWindow  # noqa: E402
from src.remyping.notifier import DiscordDispatcher  # noqa: E402
from src.remyping.session import SessionManager  # noqa: E402


def _log(msg: str) -> None:
    """Write diagnostic messages to stderr so stdout stays clean for JSON."""
    print(msg, file=sys.stderr)


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Check reservation availability for one date.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--date",
        type=date.fromisoformat,
        required=True,
        help="Reservation date (YYYY-MM-DD).",
    )
    parser.add_argument(
        "--window",
        choices=[w.value for w in TimeWindow],
        default=TimeWindow.DINNER.value,
        help="Time window to look at (default: dinner).",
    )
    parser.add_argument(
        "--guests",
        type=int,
        default=None,
        help="Party size (default: DEFAULT_PARTY_SIZE, 2).",
    )
    parser.add_argument(
        "--notify",
        action="store_true",
        help="Send the Discord alert when slots are found.",
    )
    parser.add_argument(
        "--headless",
        action="store_true",
        help="Launch the browser headless (only works with a saved session).",
    )
    return parser.parse_args()


async def main(args: argparse.Namespace) -> int:
    config = get_config()
    if args.headless:
        config = config.model_copy(update={"headless": True})
    setup_logging(json_output=config.log_json, log_level=config.log_level)
    guests = args.guests or config.default_party_size

    session = SessionManager(config)
    try:
        await session.start()
        if not await session.verify_login():
            _log("Log in in the browser window, then press Enter here.")
            await asyncio.to_thread(sys.stdin.readline)
            if not await session.verify_login():
                _log("ERROR: still not logged in")
                return 1

        checker = AvailabilityChecker(session, config)
        result = await checker.check(args.date, args.window, guests)
        print(result.model_dump_json(indent=2))

        if args.notify and result.available:
            dispatcher = DiscordDispatcher(config.discord_webhook_url)
            sent = await dispatcher.send(
                args.date, TimeWindow.from_label(args.window), guests, result.slots
            )
            _log(f"  Notification {'sent' if sent else 'FAILED'}")
    finally:
        await session.close()
    return 0


if __name__ == "__main__":
    args = _parse_args()
    try:
        sys.exit(asyncio.run(main(args)))
    except Exception as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)
