from __future__ import annotations

import argparse
import json
import sys

import requests


def _print(obj) -> None:
    print(json.dumps(obj, indent=2, ensure_ascii=False))


def _emit(r) -> int:
    try:
        _print(r.json())
    except ValueError:
        # error pages from a proxy in front of the API are not JSON
        print(r.text)
        return 1
    return 0 if r.ok else 1


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(description="Gateway Service Watcher CLI")
    p.add_argument("--api", default="http://localhost:8000", help="Watcher API base URL")
    sub = p.add_subparsers(dest="cmd", required=True)

    sub.add_parser("status", help="Show watcher status and the last reconciliation pass")

    s_ev = sub.add_parser("events", help="Show events")
    s_ev.add_argument("--limit", type=int, default=20)

    s_rec = sub.add_parser("reconcile", help="Request a reconciliation pass")
    s_rec.add_argument("--wait", action="store_true", help="Run the pass now and print its report")

    args = p.parse_args(argv)

    base = args.api.rstrip("/")

    if args.cmd == "status":
        return _emit(requests.get(f"{base}/status", timeout=10))

    if args.cmd == "events":
        return _emit(requests.get(f"{base}/events", params={"limit": args.limit}, timeout=10))

    if args.cmd == "reconcile":
        params = {"wait": "true"} if args.wait else None
        # a synchronous pass walks every container, give it room
        r = requests.post(f"{base}/reconcile", params=params, timeout=120 if args.wait else 10)
        return _emit(r)

    return 2


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
