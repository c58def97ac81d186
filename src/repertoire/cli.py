"""Command-line interface for cohort repertoire summaries."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd

from . import cohort, io, locus
from .config import cohort_config, inline_metadata, output_dir, sample_ids
from .frequency import complete_axis
from .loader import SampleResolver
from .utils import load_config, setup_logging


def _metadata(config: Dict, override: Optional[str]) -> Optional[pd.DataFrame]:
    path = override or cohort_config(config).get("metadata")
    if path:
        return io.read_metadata(path)
    rows = inline_metadata(config)
    return io.metadata_frame(rows) if rows else None


def _ordered_tables(result: cohort.CohortResult, cfg: Dict) -> Dict[str, pd.DataFrame]:
    tables = dict(result.frequencies)
    if cfg.get("complete_axis"):
        tables = {axis: complete_axis(table) for axis, table in tables.items()}
    if cfg.get("locus_table"):
        lookup = io.read_locus_table(cfg["locus_table"])
        tables = {axis: locus.order_axis(table, lookup) for axis, table in tables.items()}
    return tables


def run(config: Dict, *, samples: Optional[List[str]] = None, metadata_path: Optional[str] = None) -> cohort.CohortResult:
    cfg = cohort_config(config)
    ids = samples or sample_ids(config)
    if not ids:
        raise SystemExit("No samples given on the command line or in the configuration")

    result = cohort.run_cohort(
        ids,
        SampleResolver(Path(cfg["sample_dir"]), cfg["sample_pattern"]),
        _metadata(config, metadata_path),
        axes=cfg["axes"],
        with_diversity=bool(cfg["diversity"]),
        max_workers=cfg["max_workers"],
        sample_timeout=cfg["sample_timeout"],
        chain_marker=cfg["chain_marker"],
        chain_field=cfg["chain_field"],
        productive_only=bool(cfg["productive_only"]),
        delimiter=cfg["delimiter"],
        retries=cfg["retries"],
        retry_delay=cfg["retry_delay"],
    )
    io.write_cohort(result, output_dir(config), frequency_tables=_ordered_tables(result, cfg))
    return result


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Summarise TCR repertoires across a cohort")
    parser.add_argument("--config", default="config/cohort.yaml", help="Config file path")
    parser.add_argument("--samples", nargs="+", help="Sample identifiers (overrides config)")
    parser.add_argument("--metadata", help="Sample metadata table (sample_id, group_label)")
    parser.add_argument("--log-level", default="INFO", help="Logging level")
    args = parser.parse_args(argv)

    setup_logging(args.log_level)
    config = load_config(args.config)
    result = run(config, samples=args.samples, metadata_path=args.metadata)
    for failure in result.failures:
        logging.warning("  ✗ %s: %s (%s)", failure.sample_id, failure.error_type, failure.message)
    if result.failures and not result.succeeded:
        raise SystemExit(1)


if __name__ == "__main__":
    main()
