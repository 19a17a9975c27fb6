"""Edge dispersion across an ensemble of samples.

Given a (samples x edges) matrix of per-edge values (edge masses or edge
imbalances) that all refer to the same reference tree, computes for every
edge how much its value varies across the samples.

Method:
    1. Column-wise mean and population standard deviation. Columns are
       independent, so they are split into contiguous chunks that are
       reduced by a thread pool and gathered into pre-sized arrays.
       Non-finite entries are skipped; a column without finite entries,
       and every column of a matrix without rows, yields mean = sd = 0.
    2. Four per-edge statistics derived from (mean, sd):
           sd  = sd
           var = sd * sd
           cv  = sd / mean          (coefficient of variation)
           vmr = sd * sd / mean     (variance-to-mean ratio, index of dispersion)
       A zero mean gives inf or NaN. These are passed on unchanged; the
       color normalization below ignores non-finite values when scaling.
    3. For every requested variant the matching vector is handed to the
       output adapter together with a ColorNormalization and the tree.

All four statistics are always computed. They are cheap, and with
``method="all"`` each of them is needed twice (linear and log scaled).
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

import numpy as np

from phylodisp.base import OutputAdapter, PlacementProfile, ReferenceTree
from phylodisp.errors import InsufficientSamplesError, InternalError, ShapeMismatchError
from phylodisp.options import DispersionOptions, OutputOptions, effective_workers
from phylodisp.output import DispersionTableOutput
from phylodisp.variants import (
    DispersionMethod,
    DispersionVariant,
    EdgeValues,
    get_variants,
    selected_edge_values,
)

logger = logging.getLogger(__name__)

# Floor of log-scaled color normalizations, relative to their maximum.
LOG_SCALE_FLOOR_RATIO = 1e-4


@dataclass(frozen=True)
class ColumnStats:
    """Per-edge mean and standard deviation of an edge value matrix."""

    mean: np.ndarray
    stddev: np.ndarray

    def __len__(self) -> int:
        return len(self.mean)


def _chunk_mean_stddev(block: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    finite = np.isfinite(block)
    count = np.maximum(finite.sum(axis=0), 1)
    filled = np.where(finite, block, 0.0)
    mean = filled.sum(axis=0) / count
    dev = np.where(finite, block - mean, 0.0)
    stddev = np.sqrt((dev * dev).sum(axis=0) / count)
    return mean, stddev


def column_mean_stddev(data: np.ndarray, n_workers: int | None = None) -> ColumnStats:
    """Compute mean and population standard deviation of every column.

    Args:
        data: Matrix of shape (rows, cols).
        n_workers: Number of threads; columns are split into that many
            contiguous chunks. None means one per CPU.

    Returns:
        ColumnStats with arrays of length cols.
    """
    data = np.asarray(data, dtype=np.float64)
    if data.ndim != 2:
        raise ShapeMismatchError(f"Expected a 2D matrix, got shape {data.shape}")

    n_rows, n_cols = data.shape
    mean = np.zeros(n_cols)
    stddev = np.zeros(n_cols)

    # Nothing to do. Better stop here or we risk dividing by zero.
    if n_rows == 0 or n_cols == 0:
        return ColumnStats(mean, stddev)

    workers = min(effective_workers(n_workers), n_cols)
    if workers == 1:
        mean[:], stddev[:] = _chunk_mean_stddev(data)
        return ColumnStats(mean, stddev)

    bounds = np.linspace(0, n_cols, workers + 1).astype(int)
    chunks = [(int(a), int(b)) for a, b in zip(bounds[:-1], bounds[1:]) if b > a]
    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = [
            (start, stop, executor.submit(_chunk_mean_stddev, data[:, start:stop]))
            for start, stop in chunks
        ]
        for start, stop, future in futures:
            mean[start:stop], stddev[start:stop] = future.result()

    return ColumnStats(mean, stddev)


@dataclass(frozen=True)
class DispersionVectors:
    """The four per-edge dispersion statistics derived from ColumnStats."""

    sd: np.ndarray
    var: np.ndarray
    cv: np.ndarray
    vmr: np.ndarray

    @classmethod
    def from_stats(cls, stats: ColumnStats) -> "DispersionVectors":
        sd = np.array(stats.stddev, dtype=np.float64)
        var = sd * sd
        with np.errstate(divide="ignore", invalid="ignore"):
            cv = sd / stats.mean
            vmr = var / stats.mean
        return cls(sd=sd, var=var, cv=cv, vmr=vmr)

    def vector(self, method: DispersionMethod) -> np.ndarray:
        try:
            attr = _VECTOR_OF_METHOD[method]
        except KeyError:
            raise InternalError(f"Invalid dispersion method: {method!r}") from None
        return getattr(self, attr)


_VECTOR_OF_METHOD = {
    DispersionMethod.STANDARD_DEVIATION: "sd",
    DispersionMethod.VARIANCE: "var",
    DispersionMethod.COEFFICIENT_OF_VARIATION: "cv",
    DispersionMethod.INDEX_OF_DISPERSION: "vmr",
}


@dataclass(frozen=True)
class ColorNormalization:
    """Value range that an output stage should map onto a color scale.

    For logarithmic normalizations ``min_value`` is always > 0, and values
    below it are meant to be clipped to the lowest color (``clip_under``).
    """

    min_value: float
    max_value: float
    logarithmic: bool = False
    clip_under: bool = False


def make_color_normalization(values: np.ndarray, log_scaling: bool) -> ColorNormalization:
    """Auto-scale a color normalization to the finite entries of ``values``.

    Log scaling cannot start at 0, so a few orders of magnitude below the
    maximum are shown instead: the floor is 1.0 if the maximum exceeds 1.0,
    and max * 1e-4 otherwise.
    """
    values = np.asarray(values, dtype=np.float64)
    finite = values[np.isfinite(values)]
    max_value = float(finite.max()) if finite.size else 1.0

    if not log_scaling:
        return ColorNormalization(min_value=0.0, max_value=max_value)

    if max_value <= 0.0:
        max_value = 1.0
    if max_value > 1.0:
        min_value = 1.0
    else:
        min_value = max_value * LOG_SCALE_FLOOR_RATIO
    return ColorNormalization(
        min_value=min_value, max_value=max_value, logarithmic=True, clip_under=True
    )


def run_with_matrix(
    variants: list[DispersionVariant],
    values: np.ndarray,
    edge_values: EdgeValues,
    tree: ReferenceTree,
    output: OutputAdapter | None = None,
    n_workers: int | None = None,
) -> dict[str, np.ndarray]:
    """Compute and emit all variants that use one kind of edge values.

    Args:
        variants: Full variant list; only those of kind ``edge_values`` are
            processed, in list order.
        values: Edge value matrix of shape (samples, tree.edge_count).
        edge_values: Which kind of edge values ``values`` holds.
        tree: Reference tree of the ensemble.
        output: Optional adapter receiving every vector.
        n_workers: Threads for the column-wise statistics.

    Returns:
        Dict mapping variant name to its per-edge vector.

    Raises:
        ShapeMismatchError: If the column count differs from the edge count.
    """
    values = np.asarray(values, dtype=np.float64)
    if values.ndim != 2 or values.shape[1] != tree.edge_count:
        raise ShapeMismatchError(
            f"{edge_values.value} matrix has shape {values.shape}, "
            f"but the reference tree has {tree.edge_count} edges"
        )

    vectors = DispersionVectors.from_stats(column_mean_stddev(values, n_workers=n_workers))

    results = {}
    for variant in variants:
        if variant.edge_values != edge_values:
            continue
        vec = vectors.vector(variant.method)
        norm = make_color_normalization(vec, variant.log_scaling)
        logger.debug(
            "Dispersion variant %s: range [%g, %g]%s",
            variant.name, norm.min_value, norm.max_value,
            " (log)" if norm.logarithmic else "",
        )
        if output is not None:
            output.write(variant, vec, norm, tree)
        results[variant.name] = vec
    return results


def run_dispersion(
    profile: PlacementProfile,
    options: DispersionOptions | None = None,
    output: OutputAdapter | None = None,
) -> dict[str, np.ndarray]:
    """Compute the edge dispersion of an ensemble for all selected variants.

    Args:
        profile: Edge masses and imbalances of the ensemble plus its tree.
        options: Variant selection and worker count; defaults to all variants.
        output: Optional adapter receiving every vector.

    Returns:
        Dict mapping variant name to its per-edge vector, in variant order.

    Raises:
        InsufficientSamplesError: If the ensemble has fewer than two samples.
        ShapeMismatchError: If the matrices do not fit each other or the tree.
    """
    options = options or DispersionOptions()
    variants = get_variants(options.edge_values, options.method)

    if profile.edge_masses.shape != profile.edge_imbalances.shape:
        raise ShapeMismatchError(
            f"Edge masses {profile.edge_masses.shape} and edge imbalances "
            f"{profile.edge_imbalances.shape} differ in shape"
        )
    if profile.sample_count <= 1:
        raise InsufficientSamplesError(
            "Cannot compute edge dispersion of a single sample, as the method is meant "
            "to visualize dispersion (variance) across a set of samples."
        )

    matrices = {
        EdgeValues.MASSES: profile.edge_masses,
        EdgeValues.IMBALANCES: profile.edge_imbalances,
    }
    kinds = selected_edge_values(options.edge_values)
    for variant in variants:
        if variant.edge_values not in kinds:
            raise InternalError(
                f"Variant {variant.name} requested, but no {variant.edge_values.value} "
                "matrix is computed"
            )

    logger.info(
        "Calculating %d dispersion variant(s) over %d samples and %d edges",
        len(variants), profile.sample_count, profile.tree.edge_count,
    )
    results = {}
    for kind in kinds:
        results.update(
            run_with_matrix(
                variants, matrices[kind], kind, profile.tree,
                output=output, n_workers=options.n_workers,
            )
        )
    return results


def write_dispersion(
    profile: PlacementProfile,
    options: DispersionOptions | None = None,
    output_options: OutputOptions | None = None,
) -> dict[str, np.ndarray]:
    """Run the dispersion and write ``dispersion.csv`` and ``dispersion.json``.

    Raises:
        ValueError: If the options select no variant at all.
        OutputExistsError: If an output file exists already.
    """
    options = options or DispersionOptions()
    output_options = output_options or OutputOptions()

    if not get_variants(options.edge_values, options.method):
        raise ValueError(
            f"No dispersion variant for edge values '{options.edge_values}' "
            f"and method '{options.method}'"
        )
    output_options.check_nonexistence([("dispersion", "csv"), ("dispersion", "json")])

    table = DispersionTableOutput()
    results = run_dispersion(profile, options, output=table)
    table.save(
        output_options.path("dispersion", "csv"),
        output_options.path("dispersion", "json"),
    )
    return results
