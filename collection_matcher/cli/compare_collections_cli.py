"""
CLI entry point for comparing two JSON collections.

This is the imperative shell: it reads the environment, parses arguments, loads the
collections and the match configuration, runs ``compare`` and writes the report.
"""

import argparse
import csv
import json
import os
import time
from pathlib import Path
from typing import Mapping, Sequence

import attrs
from aletk.utils import get_logger, lginf
from dotenv import load_dotenv

from collection_matcher.adapters.json_collection import load_collection
from collection_matcher.adapters.json_config import load_match_config
from collection_matcher.matching.models import DEFAULT_MATCH_CONFIG, ComparisonResult, MatchConfig, Record, ReportRow
from collection_matcher.matching.pipeline import compare

lgr = get_logger(__file__)

load_dotenv()


# ============================================================================
# Constants
# ============================================================================

REPORT_COLUMNS = [
    "status",
    "left_id",
    "left_title",
    "right_id",
    "right_title",
    "tier",
    "score",
    "matched_fields",
    "candidates_json",
]


# ============================================================================
# Helpers
# ============================================================================


def _env_int(name: str) -> int | None:
    raw = os.getenv(name, "").strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"Environment variable {name} must be an integer, got '{raw}'") from e


def apply_overrides(config: MatchConfig, workers: int | None, max_pairs: int | None) -> MatchConfig:
    """Command line values win over the environment, which wins over the config file."""
    workers = workers if workers is not None else _env_int("COLLECTION_MATCHER_WORKERS")
    max_pairs = max_pairs if max_pairs is not None else _env_int("COLLECTION_MATCHER_MAX_PAIRS")

    changes: dict[str, int] = {}
    if workers is not None:
        changes["workers"] = workers
    if max_pairs is not None:
        changes["max_pairs"] = max_pairs
    return attrs.evolve(config, **changes) if changes else config


def build_title_lookup(records: Sequence[Record], config: MatchConfig) -> dict[str, str]:
    """Record id -> value of the primary text field, for human-readable reports."""
    spec = config.primary_text_field
    if spec is None:
        return {}
    return {record.id: str(record.get(spec.name) or "") for record in records}


def build_output_row(row: ReportRow, left_titles: Mapping[str, str], right_titles: Mapping[str, str]) -> dict[str, str]:
    output_row: dict[str, str] = dict(row)
    output_row["left_title"] = left_titles.get(row["left_id"], "")
    output_row["right_title"] = "; ".join(
        right_titles.get(right_id, "") for right_id in row["right_id"].split(";") if right_id
    )
    return output_row


def write_report(
    output_path: Path,
    result: ComparisonResult,
    left_titles: Mapping[str, str],
    right_titles: Mapping[str, str],
) -> int:
    rows = result.to_report_rows()
    with open(output_path, "w", encoding="utf-8", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=REPORT_COLUMNS)
        writer.writeheader()
        for row in rows:
            writer.writerow(build_output_row(row, left_titles, right_titles))
    return len(rows)


def write_summary(summary_path: Path, result: ComparisonResult) -> None:
    payload = {**result.to_summary(), "metadata": dict(result.metadata)}
    with open(summary_path, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, ensure_ascii=False)


# ============================================================================
# CLI Argument Parsing
# ============================================================================


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Match the records of two JSON collections and write a CSV report."
    )

    parser.add_argument(
        "--left",
        "-l",
        type=str,
        required=True,
        help="Left collection (JSON list of items, or object with an 'items' list).",
    )

    parser.add_argument(
        "--right",
        "-r",
        type=str,
        required=True,
        help="Right collection, same format as --left.",
    )

    parser.add_argument(
        "--config",
        "-c",
        type=str,
        default=None,
        help="JSON match configuration (default: title + year matching).",
    )

    parser.add_argument(
        "--output",
        "-o",
        type=str,
        required=True,
        help="Output CSV file path for the report.",
    )

    parser.add_argument(
        "--summary",
        "-s",
        type=str,
        default=None,
        help="Optional JSON file for the comparison summary.",
    )

    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Threads used for fuzzy scoring (default: $COLLECTION_MATCHER_WORKERS or config).",
    )

    parser.add_argument(
        "--max-pairs",
        type=int,
        default=None,
        help="Refuse comparisons above this many record pairs (default: $COLLECTION_MATCHER_MAX_PAIRS or config).",
    )

    return parser.parse_args(argv)


# ============================================================================
# Main CLI Entry Point (Imperative Shell)
# ============================================================================


def cli(argv: Sequence[str] | None = None) -> None:
    frame = "cli"
    args = parse_args(argv)

    # === VALIDATE PATHS ===
    left_path = Path(args.left)
    right_path = Path(args.right)
    output_path = Path(args.output)

    if not left_path.exists():
        raise FileNotFoundError(f"Left collection not found: {left_path}")
    if not right_path.exists():
        raise FileNotFoundError(f"Right collection not found: {right_path}")

    # === CONFIGURATION ===
    if args.config is not None:
        config_path = Path(args.config)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
        config = load_match_config(config_path)
        lginf(frame, f"Loaded match configuration from {config_path}", lgr)
    else:
        config = DEFAULT_MATCH_CONFIG
    config = apply_overrides(config, args.workers, args.max_pairs)

    # === LOAD COLLECTIONS ===
    start = time.perf_counter()
    left = load_collection(left_path, config)
    right = load_collection(right_path, config)
    lginf(
        frame,
        f"Loaded {len(left)} left and {len(right)} right records in {time.perf_counter() - start:.1f}s",
        lgr,
    )

    # === COMPARE ===
    start = time.perf_counter()
    result = compare(left, right, config)
    lginf(frame, f"Comparison finished in {time.perf_counter() - start:.1f}s", lgr)

    # === WRITE OUTPUT ===
    written = write_report(output_path, result, build_title_lookup(left, config), build_title_lookup(right, config))
    lginf(frame, f"Wrote {written} rows to {output_path}", lgr)

    if args.summary is not None:
        summary_path = Path(args.summary)
        write_summary(summary_path, result)
        lginf(frame, f"Wrote summary to {summary_path}", lgr)


if __name__ == "__main__":
    cli()
