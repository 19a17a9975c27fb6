"""Base types and protocols for phylodisp.

Defines the small data model that the reducers consume, and the protocols
that external collaborators must satisfy. phylodisp never parses placement
files or builds trees itself; a "sample ensemble provider" does that and
hands over objects shaped like the ones below.

The collaborator protocols are:
    SampleProvider
        file_count() -> int, sample(i) -> Sample, base_file_name(i) -> str.
        Used by the EDPL reducer to read one sample per input file.

    DistanceMatrixProvider
        (tree) -> np.ndarray of shape (node_count, node_count).

    EdplMetric
        (pquery, tree, node_distances) -> float.

    OutputAdapter
        write(variant, values, normalization, tree) -> None.
        Receives one per-edge dispersion vector per requested variant.

Any object that provides these methods can be plugged into the reducers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

import numpy as np


@dataclass(frozen=True)
class TreeEdge:
    """One branch of the reference tree.

    ``primary_node`` is the end of the edge closer to the root,
    ``secondary_node`` the end further away from it.
    """

    index: int
    primary_node: int
    secondary_node: int
    branch_length: float = 0.0


@dataclass(frozen=True)
class ReferenceTree:
    """Topology and branch lengths of the reference tree shared by an ensemble.

    Nodes are identified by their index in ``[0, node_count)``; edges are
    stored in edge-index order, which is also the column order of every
    edge value matrix.
    """

    node_count: int
    edges: tuple[TreeEdge, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "edges", tuple(self.edges))
        for i, edge in enumerate(self.edges):
            if edge.index != i:
                raise ValueError(f"Edge at position {i} has index {edge.index}")
            for node in (edge.primary_node, edge.secondary_node):
                if not 0 <= node < self.node_count:
                    raise ValueError(
                        f"Edge {i} references node {node}, "
                        f"but the tree has {self.node_count} nodes"
                    )

    @property
    def edge_count(self) -> int:
        return len(self.edges)

    def empty(self) -> bool:
        return self.node_count == 0

    def compatible_with(self, other: "ReferenceTree") -> bool:
        """Return True if both trees have identical topology.

        Node and edge counts must match and every edge must connect the same
        pair of node indices in the same direction. Branch lengths are not
        compared.
        """
        if self.node_count != other.node_count or self.edge_count != other.edge_count:
            return False
        for mine, theirs in zip(self.edges, other.edges):
            if (mine.primary_node, mine.secondary_node) != (
                theirs.primary_node,
                theirs.secondary_node,
            ):
                return False
        return True

    @classmethod
    def from_parents(
        cls,
        parents: list[int | None],
        branch_lengths: list[float] | None = None,
    ) -> "ReferenceTree":
        """Build a tree from a parent list.

        ``parents[n]`` is the parent node of node ``n`` (None for the root).
        One edge is created per non-root node, in node order; its branch
        length is ``branch_lengths[n]`` (default 1.0).

        Example:
            # root 0 with children 1 and 2, node 3 below node 1
            tree = ReferenceTree.from_parents([None, 0, 0, 1])
            tree.edge_count  # 3
        """
        edges = []
        for node, parent in enumerate(parents):
            if parent is None:
                continue
            length = 1.0 if branch_lengths is None else float(branch_lengths[node])
            edges.append(TreeEdge(len(edges), parent, node, length))
        return cls(node_count=len(parents), edges=tuple(edges))


@dataclass(frozen=True)
class PqueryPlacement:
    """A candidate placement location of a query on one edge."""

    edge_index: int
    like_weight_ratio: float
    proximal_length: float = 0.0
    pendant_length: float = 0.0


@dataclass(frozen=True)
class PqueryName:
    name: str
    multiplicity: float = 1.0


@dataclass
class Pquery:
    """A placed query: its candidate placements and the names it stands for."""

    placements: list[PqueryPlacement] = field(default_factory=list)
    names: list[PqueryName] = field(default_factory=list)

    def total_multiplicity(self) -> float:
        return float(sum(n.multiplicity for n in self.names))


@dataclass
class Sample:
    """All pqueries placed on one reference tree (one input file)."""

    tree: ReferenceTree
    pqueries: list[Pquery] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.pqueries)

    def __iter__(self):
        return iter(self.pqueries)


@dataclass
class PlacementProfile:
    """Per-edge value matrices of an ensemble, as produced by the provider.

    Both matrices have one row per sample and one column per edge of
    ``tree``, in edge-index order.
    """

    tree: ReferenceTree
    edge_masses: np.ndarray
    edge_imbalances: np.ndarray

    def __post_init__(self):
        self.edge_masses = np.asarray(self.edge_masses, dtype=np.float64)
        self.edge_imbalances = np.asarray(self.edge_imbalances, dtype=np.float64)

    @property
    def sample_count(self) -> int:
        return int(self.edge_masses.shape[0])


@runtime_checkable
class SampleProvider(Protocol):
    """Protocol for the ensemble of input files read by the EDPL reducer."""

    def file_count(self) -> int:
        ...

    def sample(self, index: int) -> Sample:
        """Read and return the sample of input file ``index``."""
        ...

    def base_file_name(self, index: int) -> str:
        """Return the sample identifier used in list output."""
        ...


@runtime_checkable
class DistanceMatrixProvider(Protocol):
    def __call__(self, tree: ReferenceTree) -> np.ndarray:
        ...


@runtime_checkable
class EdplMetric(Protocol):
    def __call__(
        self, pquery: Pquery, tree: ReferenceTree, node_distances: np.ndarray
    ) -> float:
        ...


@runtime_checkable
class OutputAdapter(Protocol):
    """Receiver of per-edge dispersion vectors.

    ``normalization`` is a ``phylodisp.dispersion.ColorNormalization``
    describing how the values should be mapped to colors.
    """

    def write(self, variant, values: np.ndarray, normalization, tree: ReferenceTree) -> None:
        ...


class SampleList:
    """In-memory SampleProvider over already-loaded samples.

    Example:
        samples = SampleList([("a", sample_a), ("b", sample_b)])
        reducer = EdplReducer(samples)
    """

    def __init__(self, samples: list[tuple[str, Sample]]):
        self._samples = list(samples)

    def file_count(self) -> int:
        return len(self._samples)

    def sample(self, index: int) -> Sample:
        return self._samples[index][1]

    def base_file_name(self, index: int) -> str:
        return self._samples[index][0]
