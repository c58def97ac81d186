"""Configuration helpers for cohort runs."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional

DEFAULT_CHAIN_MARKER = "TRA"
DEFAULT_CHAIN_FIELD = "v_call"
DEFAULT_SAMPLE_DIR = "data/samples"
DEFAULT_SAMPLE_PATTERN = "{sample_id}.tsv"
DEFAULT_OUTPUT_DIR = "processed/cohort"
DEFAULT_AXES = ("v_gene", "j_gene")


def cohort_config(config: Optional[Dict]) -> Dict:
    if not config:
        cfg: Dict = {}
    else:
        cfg = dict(config.get("cohort") or {})
    cfg.setdefault("chain_marker", DEFAULT_CHAIN_MARKER)
    cfg.setdefault("chain_field", DEFAULT_CHAIN_FIELD)
    cfg.setdefault("sample_dir", DEFAULT_SAMPLE_DIR)
    cfg.setdefault("sample_pattern", DEFAULT_SAMPLE_PATTERN)
    cfg.setdefault("delimiter", "\t")
    cfg.setdefault("productive_only", False)
    cfg.setdefault("max_workers", 4)
    cfg.setdefault("retries", 2)
    cfg.setdefault("retry_delay", 0.5)
    cfg.setdefault("sample_timeout", None)
    cfg.setdefault("axes", list(DEFAULT_AXES))
    cfg.setdefault("diversity", True)
    cfg.setdefault("complete_axis", False)
    cfg.setdefault("metadata", None)
    cfg.setdefault("locus_table", None)
    cfg.setdefault("output_dir", DEFAULT_OUTPUT_DIR)
    return cfg


def sample_ids(config: Optional[Dict]) -> list[str]:
    """Sample identifiers listed under ``samples`` (plain ids or ``{id: ...}`` entries)."""
    ids = []
    for entry in (config or {}).get("samples", []) or []:
        if isinstance(entry, dict):
            ids.append(str(entry["id"]))
        else:
            ids.append(str(entry))
    return ids


def inline_metadata(config: Optional[Dict]) -> list[Dict]:
    rows = []
    for entry in (config or {}).get("samples", []) or []:
        if isinstance(entry, dict) and "group" in entry:
            rows.append({"sample_id": str(entry["id"]), "group_label": entry["group"]})
    return rows


def output_dir(config: Optional[Dict]) -> Path:
    return Path(cohort_config(config)["output_dir"])
