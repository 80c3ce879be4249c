#!/usr/bin/env python3
"""
Serve the screening retention API with uvicorn.

Startup runs the due reconciliation pass and arms the renewal timer.
"""

import argparse
import sys
from pathlib import Path

import uvicorn

# Add the project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))


def main():
    parser = argparse.ArgumentParser(description="Serve the screening retention API")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    args = parser.parse_args()

    uvicorn.run("screening_retention.api.main:app", host=args.host, port=args.port)


if __name__ == "__main__":
    main()
