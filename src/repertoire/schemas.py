"""Pandera schemas for record, metadata and locus tables."""

from __future__ import annotations

import logging
from typing import Optional

import pandas as pd
import pandera as pa

from .errors import MalformedInputError

REQUIRED_RECORD_COLUMNS = ["sequence_id", "v_call", "j_call", "consensus_count", "junction_aa"]


def _text_column(*, nullable: bool, unique: bool = False) -> pa.Column:
    # Text columns are held as object so a header-only table still validates.
    return pa.Column(
        object,
        pa.Check(lambda value: isinstance(value, str), element_wise=True, error="value is not a string"),
        required=True,
        nullable=nullable,
        unique=unique,
    )


record_table_schema = pa.DataFrameSchema(
    {
        "sequence_id": _text_column(nullable=False),
        "v_call": _text_column(nullable=True),
        "j_call": _text_column(nullable=True),
        "consensus_count": pa.Column(int, pa.Check.ge(0), required=True, nullable=False),
        "junction_aa": _text_column(nullable=True),
        "productive": pa.Column("boolean", required=False, nullable=True),
    },
    strict=False,  # AIRR tables carry many more columns
)


metadata_schema = pa.DataFrameSchema(
    {
        "sample_id": _text_column(nullable=False, unique=True),
        "group_label": pa.Column(required=True, nullable=True),
    },
    strict=False,
)


locus_table_schema = pa.DataFrameSchema(
    {
        "gene_label": pa.Column(str, required=True, nullable=False),
        "start_position": pa.Column(int, required=True, nullable=False, coerce=True),
    },
    strict=False,
)


def _validate(
    schema: pa.DataFrameSchema,
    df: pd.DataFrame,
    what: str,
    sample_id: Optional[str] = None,
) -> pd.DataFrame:
    try:
        return schema.validate(df, lazy=True)
    except (pa.errors.SchemaError, pa.errors.SchemaErrors) as exc:
        logging.debug("%s validation failed: %s", what, exc)
        raise MalformedInputError(f"{what} validation failed: {exc}", sample_id=sample_id) from exc


def missing_columns(df: pd.DataFrame, required=REQUIRED_RECORD_COLUMNS) -> list[str]:
    return [column for column in required if column not in df.columns]


def validate_record_table(df: pd.DataFrame, *, sample_id: Optional[str] = None) -> pd.DataFrame:
    """Validate a normalised record table, raising ``MalformedInputError`` on violations."""
    missing = missing_columns(df)
    if missing:
        raise MalformedInputError(f"Record table missing required columns: {missing}", sample_id=sample_id)
    return _validate(record_table_schema, df, "Record table", sample_id)


def validate_metadata(df: pd.DataFrame) -> pd.DataFrame:
    return _validate(metadata_schema, df, "Sample metadata")


def validate_locus_table(df: pd.DataFrame) -> pd.DataFrame:
    return _validate(locus_table_schema, df, "Gene locus table")
