"""Shared test fixtures for the phylodisp test suite.

Provides a small reference tree and helpers to build samples on it:

    toy tree (node indices, branch lengths in parentheses):

              0
            /   \\
         (1)     (2)
          1       2
        /   \\
     (3)     (4)
      3       4

    edges: e0 = 0-1, e1 = 0-2, e2 = 1-3, e3 = 1-4

    Node distances: d(3, 4) = 7, d(3, 2) = 6, d(0, 4) = 5, ...

SlowSampleList delays reading of early files so that later files finish
first, to check that results still come back in input order.
"""

import threading
import time

import numpy as np
import pytest

from phylodisp.base import (
    PlacementProfile,
    Pquery,
    PqueryName,
    PqueryPlacement,
    ReferenceTree,
    Sample,
    SampleList,
)


def make_toy_tree():
    return ReferenceTree.from_parents([None, 0, 0, 1, 1], [0.0, 1.0, 2.0, 3.0, 4.0])


def make_pquery(placements, names=("q",), multiplicities=None):
    """Build a pquery from (edge, lwr, proximal_length) triples."""
    if multiplicities is None:
        multiplicities = [1.0] * len(names)
    return Pquery(
        placements=[PqueryPlacement(e, lwr, prox) for e, lwr, prox in placements],
        names=[PqueryName(n, m) for n, m in zip(names, multiplicities)],
    )


class SlowSampleList(SampleList):
    """SampleList whose file i takes (n - i) * delay seconds to read."""

    def __init__(self, samples, delay=0.02):
        super().__init__(samples)
        self.delay = delay

    def sample(self, index):
        time.sleep((self.file_count() - index) * self.delay)
        return super().sample(index)


class CountingSampleList(SampleList):
    """SampleList that counts reads; every read takes ``delay`` seconds."""

    def __init__(self, samples, delay=0.0):
        super().__init__(samples)
        self.delay = delay
        self.reads = 0
        self._lock = threading.Lock()

    def sample(self, index):
        with self._lock:
            self.reads += 1
        time.sleep(self.delay)
        return super().sample(index)


class CountingDistanceProvider:
    """Distance provider that counts how often it is called."""

    def __init__(self, provider):
        self.provider = provider
        self.calls = 0
        self._lock = threading.Lock()

    def __call__(self, tree):
        with self._lock:
            self.calls += 1
        return self.provider(tree)


class RecordingOutput:
    """OutputAdapter that records every call."""

    def __init__(self):
        self.calls = []

    def write(self, variant, values, normalization, tree):
        self.calls.append((variant, np.array(values), normalization, tree))


# ---- Pytest fixtures ----

@pytest.fixture
def toy_tree():
    """5-node, 4-edge reference tree."""
    return make_toy_tree()


@pytest.fixture
def toy_samples(toy_tree):
    """Three samples with 2, 1 and 3 pqueries; one pquery has two names."""
    s1 = Sample(toy_tree, [
        make_pquery([(2, 0.5, 1.0), (3, 0.5, 2.0)], names=("a1", "a2"), multiplicities=[1.0, 2.0]),
        make_pquery([(0, 1.0, 0.5)], names=("b",)),
    ])
    s2 = Sample(toy_tree, [
        make_pquery([(0, 0.5, 0.2), (0, 0.5, 0.7)], names=("c",), multiplicities=[3.0]),
    ])
    s3 = Sample(toy_tree, [
        make_pquery([(1, 1.0, 1.0)], names=("d",)),
        make_pquery([(1, 0.25, 0.0), (2, 0.75, 3.0)], names=("e",)),
        make_pquery([(3, 0.5, 4.0), (1, 0.5, 2.0)], names=("f",)),
    ])
    return [("s1", s1), ("s2", s2), ("s3", s3)]


@pytest.fixture
def toy_profile(toy_tree):
    """Three samples over the 4 toy edges."""
    masses = np.array([
        [1.0, 4.0, 0.0, 2.0],
        [2.0, 5.0, 0.0, 2.0],
        [3.0, 9.0, 0.0, 8.0],
    ])
    imbalances = np.array([
        [0.5, -0.5, 0.1, 0.2],
        [0.0, 0.0, 0.3, 0.2],
        [-0.5, 0.5, 0.5, 0.2],
    ])
    return PlacementProfile(toy_tree, masses, imbalances)
