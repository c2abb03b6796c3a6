"""Validate data/courses.csv, then serve the API from backend/server.py."""

import os
import subprocess
import sys

from validate_catalog import main as validate_catalog_main

SERVER = os.path.join(os.path.dirname(os.path.abspath(__file__)), "..", "backend", "server.py")


def main() -> int:
    if validate_catalog_main([]) != 0:
        print("[FATAL] Catalog validation failed; not starting the server.", file=sys.stderr)
        return 1
    print("[INFO] Starting coursepath API...")
    try:
        return subprocess.call([sys.executable, SERVER])
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
