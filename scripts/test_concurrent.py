#!/usr/bin/env python3
"""
Exercise one registered pool with N concurrent CRUD dispatches.

Each worker inserts a row into a scratch table, reads it back, updates it and
deletes it, all through the dispatcher. With --max-open smaller than
--concurrent, workers queue on the pool; the printed stats show wait_count.

Usage:
  python scripts/test_concurrent.py [--dsn DSN] [--concurrent N] [--max-open N]
  Or set env: SQLKV_DSN, CONCURRENT

Example:
  python scripts/test_concurrent.py --dsn sqlite:///load.db --concurrent 20 --max-open 4
"""

import argparse
import logging
import os
import sys
from concurrent.futures import ThreadPoolExecutor, as_completed

from sqlkv import (
    Config,
    Connection,
    Descriptor,
    OperationEnum,
    Query,
    Registry,
    SqlkvError,
)

_TABLE = "sqlkv_load"


def do_round_trip(conn: Connection, index: int) -> tuple[int, str]:
    """Create, read, update and delete one row; return (index, "ok" or error)."""
    tag = f"worker-{index}"
    steps = [
        Descriptor(op=OperationEnum.CREATE, table=_TABLE, values={"tag": tag, "n": index}),
        Descriptor(
            op=OperationEnum.READ, table=_TABLE, query=Query(fields=["n"]), where={"tag": tag}
        ),
        Descriptor(op=OperationEnum.UPDATE, table=_TABLE, values={"n": -index}, where={"tag": tag}),
        Descriptor(op=OperationEnum.DELETE, table=_TABLE, where={"tag": tag}),
    ]
    for d in steps:
        done = conn.do(d)
        if done.error is not None:
            return (index, f"{d.op.value}: {done.error}")
        if d.op == OperationEnum.READ and done.row() != {"n": index}:
            return (index, f"read back {done.row()!r}")
    return (index, "ok")


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Run N concurrent CRUD round trips against one pooled connection."
    )
    parser.add_argument(
        "--dsn",
        default=os.environ.get("SQLKV_DSN", "sqlite:///sqlkv_load.db"),
        help="Database DSN (mysql://, postgresql:// or sqlite:///)",
    )
    parser.add_argument(
        "--concurrent",
        type=int,
        default=int(os.environ.get("CONCURRENT", "20")),
        help="Number of concurrent workers (default 20)",
    )
    parser.add_argument(
        "--max-open",
        type=int,
        default=4,
        help="Pool max open connections (default 4, 0 = unlimited)",
    )
    parser.add_argument("--verbose", action="store_true", help="Log executed SQL")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    with Registry() as registry:
        try:
            registry.register(
                {"load": Config(dsn=args.dsn, max_open_conns=args.max_open, max_idle_conns=args.max_open)}
            )
        except SqlkvError as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
        conn = registry.lookup("load")
        conn.execute(f"CREATE TABLE IF NOT EXISTS {_TABLE} (tag VARCHAR(64), n INTEGER)")

        print(f"Running {args.concurrent} concurrent round trips against {args.dsn}")
        print("---")

        results: list[tuple[int, str]] = []
        with ThreadPoolExecutor(max_workers=args.concurrent) as executor:
            futures = {
                executor.submit(do_round_trip, conn, i): i
                for i in range(1, args.concurrent + 1)
            }
            for fut in as_completed(futures):
                idx, status = fut.result()
                results.append((idx, status))
                print(f"{idx} {status}")

        results.sort(key=lambda x: x[0])
        print("---")
        ok = sum(1 for _, s in results if s == "ok")
        print(f"Done. ok={ok} failed={len(results) - ok}")
        print(f"Pool stats: {conn.stats()}")

        conn.execute(f"DROP TABLE {_TABLE}")


if __name__ == "__main__":
    main()
