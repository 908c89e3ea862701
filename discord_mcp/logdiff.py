"""Compare a tool call audit log against a golden JSONL fixture."""

from __future__ import annotations

import argparse
import json
from collections.abc import Iterable
from pathlib import Path

from deepdiff import DeepDiff

DEFAULT_WHITELIST = [
    "ts",
    "duration_ms",
    "trace_id",
    "run_id",
    "request_id",
    "timestamp",
    "added_at",
    "deleted_at",
]


def load_log(path: Path, whitelist: Iterable[str]) -> list[dict[str, object]]:
    if not path.exists():
        raise FileNotFoundError(f"Log file not found: {path}")
    whitelist_set = set(whitelist)
    records: list[dict[str, object]] = []
    for line in path.read_text(encoding="utf-8").splitlines():
        if not line.strip():
            continue
        record = json.loads(line)
        metadata = dict(record.get("metadata") or {})
        for field in whitelist_set:
            record.pop(field, None)
            metadata.pop(field, None)
        record["metadata"] = metadata
        records.append(record)
    return records


def diff_logs(golden: Path, new: Path, whitelist: Iterable[str] = DEFAULT_WHITELIST) -> DeepDiff:
    fields = list(whitelist)
    return DeepDiff(load_log(golden, fields), load_log(new, fields), ignore_order=True)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Diff a tool call audit log against a golden fixture")
    parser.add_argument("--new", dest="new_log", required=True)
    parser.add_argument("--golden", dest="golden_log", required=True)
    parser.add_argument("--whitelist", nargs="*", default=DEFAULT_WHITELIST)
    args = parser.parse_args(argv)

    diff = diff_logs(Path(args.golden_log), Path(args.new_log), args.whitelist)
    if diff:
        print("Differences detected between logs:")
        print(diff)
        return 1
    print("Logs match the golden fixture.")
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
