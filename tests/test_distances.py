"""Tests for the reference tree and tree distances (phylodisp.base, phylodisp.distances)."""

import numpy as np
import pytest

from phylodisp.base import PqueryPlacement, ReferenceTree, TreeEdge
from phylodisp.distances import node_branch_length_distance_matrix, placement_distance


class TestReferenceTree:
    """Tests for ReferenceTree construction and compatibility."""

    def test_from_parents(self, toy_tree):
        assert toy_tree.node_count == 5
        assert toy_tree.edge_count == 4
        assert toy_tree.edges[2] == TreeEdge(2, 1, 3, 3.0)

    def test_compatible_ignores_branch_lengths(self, toy_tree):
        other = ReferenceTree.from_parents([None, 0, 0, 1, 1], [0, 9, 9, 9, 9])
        assert toy_tree.compatible_with(other)

    def test_incompatible_topology(self, toy_tree):
        other = ReferenceTree.from_parents([None, 0, 0, 2, 2])
        assert not toy_tree.compatible_with(other)

    def test_incompatible_size(self, toy_tree):
        other = ReferenceTree.from_parents([None, 0, 0])
        assert not toy_tree.compatible_with(other)

    def test_rejects_bad_edge_index(self):
        with pytest.raises(ValueError):
            ReferenceTree(3, (TreeEdge(1, 0, 1),))

    def test_rejects_unknown_node(self):
        with pytest.raises(ValueError):
            ReferenceTree(2, (TreeEdge(0, 0, 5),))


class TestNodeDistances:
    """Tests for node_branch_length_distance_matrix."""

    def test_toy_distances(self, toy_tree):
        d = node_branch_length_distance_matrix(toy_tree)
        assert d.shape == (5, 5)
        assert d[3, 4] == 7.0
        assert d[3, 2] == 6.0
        assert d[0, 4] == 5.0
        np.testing.assert_array_equal(np.diag(d), np.zeros(5))

    def test_symmetric_non_negative(self, toy_tree):
        d = node_branch_length_distance_matrix(toy_tree)
        np.testing.assert_array_equal(d, d.T)
        assert np.all(d >= 0.0)


class TestPlacementDistance:
    """Tests for placement_distance."""

    def test_same_edge(self, toy_tree):
        d = node_branch_length_distance_matrix(toy_tree)
        a = PqueryPlacement(0, 0.5, proximal_length=0.2)
        b = PqueryPlacement(0, 0.5, proximal_length=0.7)
        assert placement_distance(a, b, toy_tree, d) == pytest.approx(0.5)

    def test_sibling_edges(self, toy_tree):
        d = node_branch_length_distance_matrix(toy_tree)
        a = PqueryPlacement(2, 0.5, proximal_length=1.0)
        b = PqueryPlacement(3, 0.5, proximal_length=2.0)
        # Both paths meet at node 1: 1.0 + 2.0
        assert placement_distance(a, b, toy_tree, d) == pytest.approx(3.0)

    def test_symmetric(self, toy_tree):
        d = node_branch_length_distance_matrix(toy_tree)
        a = PqueryPlacement(1, 0.5, proximal_length=0.5)
        b = PqueryPlacement(2, 0.5, proximal_length=2.5)
        assert placement_distance(a, b, toy_tree, d) == placement_distance(b, a, toy_tree, d)
        # 0.5 (up edge 1) + 1.0 (edge 0) + 2.5 (down edge 2)
        assert placement_distance(a, b, toy_tree, d) == pytest.approx(4.0)

    def test_pendant_length_ignored(self, toy_tree):
        d = node_branch_length_distance_matrix(toy_tree)
        a = PqueryPlacement(0, 0.5, proximal_length=0.2, pendant_length=10.0)
        b = PqueryPlacement(0, 0.5, proximal_length=0.7, pendant_length=3.0)
        assert placement_distance(a, b, toy_tree, d) == pytest.approx(0.5)
