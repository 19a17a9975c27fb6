"""Distances on the reference tree.

``node_branch_length_distance_matrix`` is the default node distance
provider used by the EDPL reducer: the path length (sum of branch lengths)
between every pair of nodes. Any callable with the same signature can be
used instead.

``placement_distance`` measures the distance between two placement
positions on (possibly different) edges, using the precomputed node
distances. Pendant lengths are not part of the distance.
"""

from __future__ import annotations

import numpy as np

from phylodisp.base import PqueryPlacement, ReferenceTree


def node_branch_length_distance_matrix(tree: ReferenceTree) -> np.ndarray:
    """Return the (node_count, node_count) matrix of path lengths between nodes.

    Pure numpy/python traversal; one pass per source node, O(n^2) overall.
    """
    n = tree.node_count
    neighbors: list[list[tuple[int, float]]] = [[] for _ in range(n)]
    for edge in tree.edges:
        neighbors[edge.primary_node].append((edge.secondary_node, edge.branch_length))
        neighbors[edge.secondary_node].append((edge.primary_node, edge.branch_length))

    result = np.full((n, n), np.inf)
    for source in range(n):
        row = result[source]
        row[source] = 0.0
        stack = [source]
        while stack:
            node = stack.pop()
            for other, length in neighbors[node]:
                if row[other] == np.inf:
                    row[other] = row[node] + length
                    stack.append(other)
    return result


def placement_distance(
    place_a: PqueryPlacement,
    place_b: PqueryPlacement,
    tree: ReferenceTree,
    node_distances: np.ndarray,
) -> float:
    """Distance along the tree between two placement positions.

    On the same edge this is the difference of the proximal lengths.
    Otherwise the path leaves each edge through one of its two end nodes;
    the shortest of the four combinations is returned.
    """
    if place_a.edge_index == place_b.edge_index:
        return abs(place_a.proximal_length - place_b.proximal_length)

    edge_a = tree.edges[place_a.edge_index]
    edge_b = tree.edges[place_b.edge_index]

    # (node, distance from the placement position to that node)
    ends_a = (
        (edge_a.primary_node, place_a.proximal_length),
        (edge_a.secondary_node, edge_a.branch_length - place_a.proximal_length),
    )
    ends_b = (
        (edge_b.primary_node, place_b.proximal_length),
        (edge_b.secondary_node, edge_b.branch_length - place_b.proximal_length),
    )
    return float(min(
        off_a + node_distances[node_a, node_b] + off_b
        for node_a, off_a in ends_a
        for node_b, off_b in ends_b
    ))
