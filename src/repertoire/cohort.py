"""Run the per-sample summary over a cohort and join it with sample metadata."""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from concurrent.futures import FIRST_COMPLETED, Future, wait
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import pandas as pd

from . import clonotypes, dedup, frequency, loader
from .config import DEFAULT_AXES
from .diversity import DiversityResult, diversity
from .errors import InvalidCountError, RepertoireError
from .schemas import validate_metadata
from .utils import timer

FREQUENCY_TABLE_COLUMNS = ["sample_id", "group_label", "axis", "gene", "count", "frequency"]
DIVERSITY_TABLE_COLUMNS = [
    "sample_id",
    "group_label",
    "shannon",
    "evenness",
    "evenness_defined",
    "simpson",
    "num_clones",
    "num_cells",
    "n_missing_junction",
    "n_records",
    "n_resolved",
]


@dataclass(frozen=True)
class SampleFailure:
    sample_id: str
    error_type: str
    message: str
    recoverable: bool = True

    @classmethod
    def from_exception(cls, sample_id: str, exc: BaseException) -> "SampleFailure":
        return cls(
            sample_id=sample_id,
            error_type=type(exc).__name__,
            message=str(exc),
            recoverable=isinstance(exc, RepertoireError),
        )


@dataclass
class SampleSummary:
    sample_id: str
    n_records: int
    n_resolved: int
    frequencies: Dict[str, pd.DataFrame] = field(default_factory=dict)
    diversity: Optional[DiversityResult] = None
    n_missing_junction: int = 0


@dataclass
class CohortResult:
    frequencies: Dict[str, pd.DataFrame]
    diversity: pd.DataFrame
    failures: List[SampleFailure]
    cancelled: List[str] = field(default_factory=list)
    succeeded: List[str] = field(default_factory=list)

    def frequency_table(self) -> pd.DataFrame:
        """All requested axes stacked into one table."""
        tables = [table for table in self.frequencies.values() if not table.empty]
        if not tables:
            return pd.DataFrame(columns=FREQUENCY_TABLE_COLUMNS)
        return pd.concat(tables, ignore_index=True)


def summarise_sample(
    sample_id: str,
    resolver: loader.Resolver,
    *,
    axes: Sequence[str] = DEFAULT_AXES,
    with_diversity: bool = True,
    **load_options,
) -> SampleSummary:
    """Load, resolve and summarise one sample. Shares no state with other samples."""
    records = loader.load_sample(sample_id, resolver, **load_options)
    resolved = dedup.resolve(records)

    summary = SampleSummary(sample_id=sample_id, n_records=len(records), n_resolved=len(resolved))
    for axis in axes:
        summary.frequencies[axis] = frequency.gene_frequencies(resolved, axis, sample_id=sample_id)
    if with_diversity:
        tally = clonotypes.count_clonotypes(resolved, sample_id=sample_id)
        summary.n_missing_junction = tally.n_excluded
        summary.diversity = diversity(tally.counts, sample_id=sample_id)
    return summary


def _metadata_table(metadata: Optional[pd.DataFrame]) -> Optional[pd.DataFrame]:
    if metadata is None:
        return None
    table = metadata.copy()
    if "sample_id" in table.columns:
        ids = table["sample_id"].astype(object)
        table["sample_id"] = ids.where(ids.isna(), ids.map(str))
    table = validate_metadata(table)
    return table[["sample_id", "group_label"]]


def join_metadata(table: pd.DataFrame, metadata: Optional[pd.DataFrame]) -> pd.DataFrame:
    """Left-join ``group_label`` onto a cohort table by ``sample_id``; unmatched samples keep a null label."""
    meta = _metadata_table(metadata)
    base = table.drop(columns=["group_label"], errors="ignore")
    if meta is None:
        return base.assign(group_label=pd.Series([pd.NA] * len(base), index=base.index, dtype="object"))
    return base.merge(meta, on="sample_id", how="left", validate="many_to_one")


def _start_sample(sample_id: str, resolver: loader.Resolver, **options) -> Future:
    """Run one sample on its own daemon thread and return a future for its summary.

    The thread starts immediately, so the sample's clock starts at submission.
    A sample that is abandoned after a timeout keeps no cohort capacity and
    does not hold the interpreter open at exit.
    """
    future: Future = Future()

    def work() -> None:
        if not future.set_running_or_notify_cancel():
            return
        try:
            summary = summarise_sample(sample_id, resolver, **options)
        except BaseException as exc:
            future.set_exception(exc)
        else:
            future.set_result(summary)

    threading.Thread(target=work, name=f"sample-{sample_id}", daemon=True).start()
    return future


def _collect(future: Future, sample_id: str) -> Tuple[Optional[SampleSummary], Optional[SampleFailure]]:
    try:
        return future.result(), None
    except InvalidCountError as exc:
        logging.error("Sample %s has corrupt clone counts: %s", sample_id, exc)
        return None, SampleFailure.from_exception(sample_id, exc)
    except RepertoireError as exc:
        logging.warning("Sample %s skipped: %s", sample_id, exc)
        return None, SampleFailure.from_exception(sample_id, exc)
    except Exception as exc:
        logging.error("Sample %s failed with an unexpected error", sample_id, exc_info=exc)
        return None, SampleFailure.from_exception(sample_id, exc)


def _frequency_tables(summaries: List[SampleSummary], axes: Sequence[str], metadata) -> Dict[str, pd.DataFrame]:
    tables: Dict[str, pd.DataFrame] = {}
    for axis in axes:
        parts = [
            summary.frequencies[axis].assign(sample_id=summary.sample_id, axis=axis)
            for summary in summaries
        ]
        combined = (
            pd.concat(parts, ignore_index=True)
            if parts
            else pd.DataFrame(columns=["sample_id", "axis", "gene", "count", "frequency"])
        )
        tables[axis] = join_metadata(combined, metadata)[FREQUENCY_TABLE_COLUMNS]
    return tables


def _diversity_table(summaries: List[SampleSummary], metadata) -> pd.DataFrame:
    rows = []
    for summary in summaries:
        if summary.diversity is None:
            continue
        row = {"sample_id": summary.sample_id, **summary.diversity.as_row()}
        row.update(
            n_missing_junction=summary.n_missing_junction,
            n_records=summary.n_records,
            n_resolved=summary.n_resolved,
        )
        rows.append(row)
    columns = [col for col in DIVERSITY_TABLE_COLUMNS if col != "group_label"]
    table = pd.DataFrame(rows, columns=columns)
    return join_metadata(table, metadata)[DIVERSITY_TABLE_COLUMNS]


def run_cohort(
    sample_ids: Iterable[str],
    resolver: loader.Resolver,
    metadata: Optional[pd.DataFrame] = None,
    *,
    axes: Sequence[str] = DEFAULT_AXES,
    with_diversity: bool = True,
    max_workers: int = 4,
    sample_timeout: Optional[float] = None,
    stop_event: Optional[threading.Event] = None,
    **load_options,
) -> CohortResult:
    """Summarise every sample concurrently and merge the results into cohort tables.

    A failing sample is reported in ``failures`` and does not stop the others.
    At most ``max_workers`` samples are awaited at once. Once ``stop_event`` is
    set no new sample is started; samples already running are allowed to
    finish and the ones never started are listed in ``cancelled``. A sample
    without a result after ``sample_timeout`` seconds is recorded as failed and
    its worker is abandoned, freeing the slot for the next sample.
    """
    for axis in axes:
        if axis not in frequency.GENE_AXES:
            raise ValueError(f"Unknown gene axis '{axis}'; expected one of {frequency.GENE_AXES}")
    if not axes and not with_diversity:
        raise ValueError("Nothing to compute: no gene axes requested and diversity disabled")
    _metadata_table(metadata)

    ordered_ids = list(dict.fromkeys(str(sample_id) for sample_id in sample_ids))
    remaining = deque(ordered_ids)
    summaries: Dict[str, SampleSummary] = {}
    failures: Dict[str, SampleFailure] = {}
    cancelled: List[str] = []
    in_flight: Dict[Future, Tuple[str, float]] = {}
    max_workers = max(1, int(max_workers))

    with timer(f"cohort summary of {len(ordered_ids)} samples"):
        while remaining or in_flight:
            while remaining and len(in_flight) < max_workers:
                if stop_event is not None and stop_event.is_set():
                    logging.info("Stop requested; %d samples not started", len(remaining))
                    cancelled.extend(remaining)
                    remaining.clear()
                    break
                sample_id = remaining.popleft()
                future = _start_sample(
                    sample_id,
                    resolver,
                    axes=axes,
                    with_diversity=with_diversity,
                    **load_options,
                )
                in_flight[future] = (sample_id, time.monotonic())
            if not in_flight:
                break

            timeout = None
            if sample_timeout is not None:
                oldest = min(started for _, started in in_flight.values())
                timeout = max(0.0, oldest + sample_timeout - time.monotonic())
            done, _ = wait(list(in_flight), timeout=timeout, return_when=FIRST_COMPLETED)

            for future in done:
                sample_id, _ = in_flight.pop(future)
                summary, failure = _collect(future, sample_id)
                if summary is not None:
                    summaries[sample_id] = summary
                else:
                    failures[sample_id] = failure

            if sample_timeout is not None:
                now = time.monotonic()
                for future, (sample_id, started) in list(in_flight.items()):
                    if now - started >= sample_timeout:
                        del in_flight[future]
                        logging.warning("Sample %s timed out after %.1fs; worker abandoned", sample_id, sample_timeout)
                        failures[sample_id] = SampleFailure(
                            sample_id=sample_id,
                            error_type="TimeoutError",
                            message=f"No result after {sample_timeout}s",
                            recoverable=True,
                        )

    ordered = [summaries[sample_id] for sample_id in ordered_ids if sample_id in summaries]
    result = CohortResult(
        frequencies=_frequency_tables(ordered, axes, metadata),
        diversity=_diversity_table(ordered, metadata),
        failures=[failures[sample_id] for sample_id in ordered_ids if sample_id in failures],
        cancelled=cancelled,
        succeeded=[summary.sample_id for summary in ordered],
    )
    logging.info(
        "Cohort summary: %d samples succeeded, %d failed, %d not started",
        len(ordered),
        len(result.failures),
        len(cancelled),
    )
    return result
