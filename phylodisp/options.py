"""Run configuration for the dispersion and EDPL computations.

Plain dataclasses validated on construction. Invalid values raise
``ValueError`` before any computation starts.
"""

from __future__ import annotations

import math
import os
from dataclasses import dataclass
from pathlib import Path

from phylodisp.errors import OutputExistsError
from phylodisp.variants import (
    EDGE_VALUE_SELECTORS,
    METHOD_SELECTORS,
    normalize_selector,
)


def effective_workers(n_workers: int | None) -> int:
    """Resolve a worker count; None or 0 means one worker per CPU."""
    if n_workers is None or n_workers == 0:
        return os.cpu_count() or 1
    if n_workers < 0:
        raise ValueError("n_workers must be >= 0")
    return int(n_workers)


@dataclass
class DispersionOptions:
    """Settings of an edge dispersion run.

    Attributes:
        edge_values: "masses", "imbalances" or "both".
        method: "all" or one of sd, var, cv, vmr (optionally with "-log").
        n_workers: Threads used for the column-wise statistics.
    """

    edge_values: str = "both"
    method: str = "all"
    n_workers: int | None = None

    def __post_init__(self):
        self.edge_values = normalize_selector(
            self.edge_values, EDGE_VALUE_SELECTORS, "edge values"
        )
        self.method = normalize_selector(self.method, METHOD_SELECTORS, "dispersion method")
        if self.n_workers is not None and self.n_workers < 0:
            raise ValueError("n_workers must be >= 0")


@dataclass
class EdplOptions:
    """Settings of an EDPL run.

    Attributes:
        histogram_bins: Number of histogram bins.
        histogram_max: Upper bound of the histogram. A negative value means
            "use the maximal EDPL found in the samples".
        no_list_file: Do not keep per-name records, only one record per
            pquery carrying its total multiplicity.
        n_workers: Threads used to process input files concurrently.
    """

    histogram_bins: int = 25
    histogram_max: float = -1.0
    no_list_file: bool = False
    n_workers: int | None = None

    def __post_init__(self):
        if int(self.histogram_bins) != self.histogram_bins or self.histogram_bins <= 0:
            raise ValueError("histogram_bins must be a positive integer")
        self.histogram_bins = int(self.histogram_bins)
        self.histogram_max = float(self.histogram_max)
        if math.isnan(self.histogram_max) or math.isinf(self.histogram_max):
            raise ValueError("histogram_max must be finite")
        if self.histogram_max == 0.0:
            raise ValueError(
                "histogram_max must be > 0, or negative to use the maximal EDPL found"
            )
        if self.n_workers is not None and self.n_workers < 0:
            raise ValueError("n_workers must be >= 0")

    @property
    def track_names(self) -> bool:
        return not self.no_list_file


@dataclass
class OutputOptions:
    """Where output files go, and whether existing files may be replaced."""

    out_dir: str | Path = "."
    prefix: str = ""
    allow_overwrite: bool = False

    def path(self, name: str, extension: str) -> Path:
        return Path(self.out_dir) / f"{self.prefix}{name}.{extension}"

    def check_nonexistence(self, files: list[tuple[str, str]]) -> None:
        """Fail early if any of the (name, extension) output files exists.

        Raises:
            OutputExistsError: Listing every offending path, unless
                ``allow_overwrite`` is set.
        """
        if self.allow_overwrite:
            return
        existing = [str(p) for p in (self.path(n, e) for n, e in files) if p.exists()]
        if existing:
            raise OutputExistsError(
                "Output file(s) already exist: " + ", ".join(existing)
                + ". Set allow_overwrite to replace them."
            )
