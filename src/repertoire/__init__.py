"""TCR repertoire summarisation: gene usage and diversity per sample across a cohort."""

__version__ = "0.1.0"
__author__ = "Repertoire Summary Contributors"

from . import clonotypes, cohort, dedup, diversity, errors, frequency, genes, loader, locus
from .clonotypes import clonotype_counts, count_clonotypes
from .cohort import run_cohort
from .dedup import resolve
from .diversity import DiversityResult
from .frequency import gene_frequencies
from .genes import parse_gene_call
from .loader import load_sample
from .locus import order_axis

__all__ = [
    "clonotypes",
    "cohort",
    "dedup",
    "diversity",
    "errors",
    "frequency",
    "genes",
    "loader",
    "locus",
    "DiversityResult",
    "clonotype_counts",
    "count_clonotypes",
    "gene_frequencies",
    "load_sample",
    "order_axis",
    "parse_gene_call",
    "resolve",
    "run_cohort",
]
