#!/usr/bin/env python3
"""Readiness report for the booking swap API.

Prints each check (required ones first) and exits 0 when every required check
passes. With --json the summary is printed as one JSON object instead.
"""
import argparse
import json
import sys
from pathlib import Path

# Run from anywhere: put backend/ on the path so `app` resolves
_backend = Path(__file__).resolve().parent.parent
if str(_backend) not in sys.path:
    sys.path.insert(0, str(_backend))

from app.readiness import REQUIRED_CHECKS, is_ready, run_all_checks


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--json", action="store_true", help="print the summary as JSON")
    args = parser.parse_args(argv)

    checks = run_all_checks()
    ready, summary = is_ready(checks)
    if args.json:
        print(json.dumps({"ready": ready, "checks": summary}, indent=2))
        return 0 if ready else 1

    for name in sorted(checks, key=lambda n: (n not in REQUIRED_CHECKS, n)):
        passed, msg = checks[name]
        kind = "required" if name in REQUIRED_CHECKS else "optional"
        print(f"  {name:<10} {'OK' if passed else 'FAIL':<5} ({kind})  {msg}")
    print("")
    print("Readiness: READY" if ready else "Readiness: NOT READY (a required check failed)")
    return 0 if ready else 1


if __name__ == "__main__":
    sys.exit(main())
