"""Expected Distance between Placement Locations (EDPL).

The EDPL of a pquery measures how uncertain its placement is: the expected
distance along the reference tree between two of its candidate placement
locations, each drawn according to its like-weight ratio (Matsen et al.
2011). A pquery with a single placement has EDPL 0.

    EDPL(q) = sum_{i != j} lwr_i * lwr_j * d(p_i, p_j)

``EdplReducer`` computes the EDPL of every pquery of an ensemble of input
files, processing the files concurrently:

    - Each file writes its records into its own pre-sized slot, so the
      result is in input-file order no matter which file finishes first.
    - The reference tree and its node distance matrix are taken from the
      first input file, which is reduced before the others are dispatched,
      and computed exactly once under a lock. Trees that only differ in
      branch lengths therefore always yield the distances of file 0.
      Every other sample must have a compatible tree; otherwise
      IncompatibleTreesError aborts the run. Files not yet started are
      skipped, and the error is raised once running files are done.
    - The maximum EDPL over all files is kept under a lock as well; it is
      used to scale the histogram.

Reference:
    Matsen, F.A., Kodner, R.B., Armbrust, E.V. (2010). "pplacer: linear
    time maximum-likelihood and Bayesian phylogenetic placement of
    sequences onto a fixed reference tree." BMC Bioinformatics 11:538.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

import numpy as np

from phylodisp.base import (
    DistanceMatrixProvider,
    EdplMetric,
    Pquery,
    ReferenceTree,
    SampleProvider,
)
from phylodisp.distances import node_branch_length_distance_matrix, placement_distance
from phylodisp.errors import IncompatibleTreesError, InternalError
from phylodisp.histogram import Histogram, edpl_histogram
from phylodisp.options import EdplOptions, OutputOptions, effective_workers
from phylodisp.output import write_edpl_list, write_histogram

logger = logging.getLogger(__name__)


def edpl(pquery: Pquery, tree: ReferenceTree, node_distances: np.ndarray) -> float:
    """Compute the EDPL of one pquery."""
    places = pquery.placements
    result = 0.0
    for i in range(len(places)):
        for j in range(i + 1, len(places)):
            dist = placement_distance(places[i], places[j], tree, node_distances)
            result += places[i].like_weight_ratio * places[j].like_weight_ratio * dist
    return 2.0 * result


@dataclass(frozen=True)
class EdplRecord:
    """EDPL of one pquery name (or of a whole pquery, with an empty name)."""

    name: str
    multiplicity: float
    edpl: float


@dataclass
class EdplResult:
    """Per-file EDPL records of an ensemble, in input-file order."""

    file_names: list[str]
    records: list[list[EdplRecord]]
    tree: ReferenceTree | None = None
    node_distances: np.ndarray | None = None
    max_edpl: float = -np.inf

    def __post_init__(self):
        if len(self.file_names) != len(self.records):
            raise InternalError("EDPL result has a different number of names and slots")

    def rows(self):
        """Yield (file name, record) pairs in output order."""
        for name, records in zip(self.file_names, self.records):
            for record in records:
                yield name, record

    def record_count(self) -> int:
        return sum(len(r) for r in self.records)

    def values(self) -> np.ndarray:
        return np.array([r.edpl for _, r in self.rows()], dtype=np.float64)

    def weights(self) -> np.ndarray:
        return np.array([r.multiplicity for _, r in self.rows()], dtype=np.float64)


@dataclass
class EdplReducer:
    """Computes EDPL records for every input file of an ensemble.

    Args:
        samples: Provider of the input files.
        metric: Per-pquery metric; ``edpl`` by default.
        track_names: If True, one record per pquery name carrying that
            name's multiplicity. Otherwise one unnamed record per pquery
            carrying its total multiplicity.
        distance_provider: Builds the node distance matrix of the tree.
        n_workers: Files processed concurrently; None means one per CPU.

    Example:
        reducer = EdplReducer(SampleList([("a", sample_a), ("b", sample_b)]))
        result = reducer.run()
        for file_name, record in result.rows():
            print(file_name, record.name, record.edpl)
    """

    samples: SampleProvider
    metric: EdplMetric = edpl
    track_names: bool = True
    distance_provider: DistanceMatrixProvider = node_branch_length_distance_matrix
    n_workers: int | None = None

    _tree: ReferenceTree | None = field(default=None, init=False, repr=False)
    _node_distances: np.ndarray | None = field(default=None, init=False, repr=False)
    _max_edpl: float = field(default=-np.inf, init=False, repr=False)
    _processed: int = field(default=0, init=False, repr=False)
    _tree_lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)
    _max_lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)
    _count_lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)
    _aborted: threading.Event = field(default_factory=threading.Event, init=False, repr=False)

    def run(self) -> EdplResult:
        """Process all files and return their records in input order.

        The first file is reduced on its own and publishes the reference
        tree; the remaining files are then processed concurrently.

        Raises:
            IncompatibleTreesError: If two samples use different trees.
                Files that have not started yet are skipped, and the first
                failure in file order is raised after all running files are
                done; no partial result is returned.
        """
        self._tree = None
        self._node_distances = None
        self._max_edpl = -np.inf
        self._processed = 0
        self._aborted.clear()

        n_files = self.samples.file_count()
        slots: list[list[EdplRecord] | None] = [None] * n_files
        workers = min(effective_workers(self.n_workers), max(n_files - 1, 1))

        if n_files > 0:
            self._process_file(0, slots)
        if workers == 1:
            for index in range(1, n_files):
                self._process_file(index, slots)
        elif n_files > 1:
            with ThreadPoolExecutor(max_workers=workers) as executor:
                futures = [
                    executor.submit(self._process_file, index, slots)
                    for index in range(1, n_files)
                ]
            # All futures are done here; re-raise the first failure in file order.
            for future in futures:
                future.result()

        if any(slot is None for slot in slots):
            raise InternalError("Not all input files produced EDPL records")

        return EdplResult(
            file_names=[self.samples.base_file_name(i) for i in range(n_files)],
            records=slots,
            tree=self._tree,
            node_distances=self._node_distances,
            max_edpl=self._max_edpl,
        )

    def _reference(self, tree: ReferenceTree) -> tuple[ReferenceTree, np.ndarray]:
        with self._tree_lock:
            if self._tree is None:
                node_distances = np.asarray(self.distance_provider(tree), dtype=np.float64)
                self._tree, self._node_distances = tree, node_distances
            elif not self._tree.compatible_with(tree):
                raise IncompatibleTreesError("Input samples have differing reference trees.")
            ref_tree, node_distances = self._tree, self._node_distances

        if node_distances.shape != (ref_tree.node_count, ref_tree.node_count):
            raise InternalError(
                f"Distance matrix of shape {node_distances.shape} disagrees with a "
                f"tree of {ref_tree.node_count} nodes"
            )
        return ref_tree, node_distances

    def _process_file(self, index: int, slots: list) -> None:
        if self._aborted.is_set():
            return
        try:
            self._reduce_file(index, slots)
        except Exception:
            self._aborted.set()
            raise

    def _reduce_file(self, index: int, slots: list) -> None:
        with self._count_lock:
            self._processed += 1
            count = self._processed
        logger.info(
            "Processing file %d of %d: %s",
            count, self.samples.file_count(), self.samples.base_file_name(index),
        )

        sample = self.samples.sample(index)
        tree, node_distances = self._reference(sample.tree)

        records = []
        local_max = -np.inf
        for pquery in sample:
            value = float(self.metric(pquery, tree, node_distances))
            # NaN never compares greater, so it cannot become the maximum.
            if value > local_max:
                local_max = value
            if self.track_names:
                for name in pquery.names:
                    records.append(EdplRecord(name.name, float(name.multiplicity), value))
            else:
                records.append(EdplRecord("", pquery.total_multiplicity(), value))

        with self._max_lock:
            if local_max > self._max_edpl:
                self._max_edpl = local_max
        slots[index] = records


def run_edpl(
    samples: SampleProvider,
    options: EdplOptions | None = None,
    output_options: OutputOptions | None = None,
    metric: EdplMetric = edpl,
) -> tuple[EdplResult, Histogram]:
    """Compute the EDPL of an ensemble and write the list and histogram files.

    Writes ``edpl_list.csv`` (unless ``options.no_list_file``) and
    ``edpl_histogram.csv``. Existing files are checked before any work is
    done. If the reducer fails, nothing is written.

    Returns:
        Tuple (result, histogram).
    """
    options = options or EdplOptions()
    output_options = output_options or OutputOptions()

    files = [("edpl_histogram", "csv")]
    if options.track_names:
        files.insert(0, ("edpl_list", "csv"))
    output_options.check_nonexistence(files)

    reducer = EdplReducer(
        samples, metric=metric, track_names=options.track_names, n_workers=options.n_workers
    )
    result = reducer.run()

    logger.info("Writing output files.")
    if options.track_names:
        write_edpl_list(result, output_options.path("edpl_list", "csv"))
    hist = edpl_histogram(result, options.histogram_bins, options.histogram_max)
    write_histogram(hist, output_options.path("edpl_histogram", "csv"))
    return result, hist
