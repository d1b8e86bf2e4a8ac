"""Serve the job-control API (and the scheduler when ENABLE_SCHEDULER=true).

Run with: python scripts/serve.py
Port:     python scripts/serve.py --port 8080
"""

import argparse
import os
import sys

import uvicorn
from dotenv import load_dotenv

load_dotenv()

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from src.remyping.api import create_app  # noqa: E402


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Serve the RemyPing job-control API.")
    parser.add_argument("--host", default="127.0.0.1", help="Bind address.")
    parser.add_argument("--port", type=int, default=8000, help="Bind port.")
    return parser.parse_args()


if __name__ == "__main__":
    args = _parse_args()
    uvicorn.run(create_app(), host=args.host, port=args.port)
