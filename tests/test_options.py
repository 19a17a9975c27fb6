"""Tests for run configuration (phylodisp.options)."""

import os

import pytest

from phylodisp.errors import OutputExistsError
from phylodisp.options import (
    DispersionOptions,
    EdplOptions,
    OutputOptions,
    effective_workers,
)


class TestDispersionOptions:

    def test_defaults(self):
        opts = DispersionOptions()
        assert opts.edge_values == "both"
        assert opts.method == "all"

    def test_normalizes_case(self):
        opts = DispersionOptions(edge_values="Masses", method="SD-LOG")
        assert opts.edge_values == "masses"
        assert opts.method == "sd-log"

    @pytest.mark.parametrize("kwargs", [
        {"edge_values": "edges"},
        {"method": "iqr"},
        {"n_workers": -1},
    ])
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            DispersionOptions(**kwargs)


class TestEdplOptions:

    def test_defaults(self):
        opts = EdplOptions()
        assert opts.histogram_bins == 25
        assert opts.histogram_max < 0
        assert opts.track_names

    def test_no_list_file_disables_names(self):
        assert not EdplOptions(no_list_file=True).track_names

    @pytest.mark.parametrize("kwargs", [
        {"histogram_bins": 0},
        {"histogram_bins": 2.5},
        {"histogram_max": 0.0},
        {"histogram_max": float("inf")},
        {"histogram_max": float("nan")},
    ])
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            EdplOptions(**kwargs)


class TestOutputOptions:

    def test_path(self, tmp_path):
        opts = OutputOptions(out_dir=tmp_path, prefix="run1_")
        assert opts.path("edpl_list", "csv") == tmp_path / "run1_edpl_list.csv"

    def test_check_nonexistence(self, tmp_path):
        opts = OutputOptions(out_dir=tmp_path)
        opts.check_nonexistence([("a", "csv"), ("b", "csv")])
        (tmp_path / "b.csv").write_text("")
        with pytest.raises(OutputExistsError, match="b.csv"):
            opts.check_nonexistence([("a", "csv"), ("b", "csv")])

    def test_allow_overwrite(self, tmp_path):
        (tmp_path / "a.csv").write_text("")
        OutputOptions(out_dir=tmp_path, allow_overwrite=True).check_nonexistence([("a", "csv")])


def test_effective_workers():
    assert effective_workers(3) == 3
    assert effective_workers(None) == (os.cpu_count() or 1)
    assert effective_workers(0) == (os.cpu_count() or 1)
    with pytest.raises(ValueError):
        effective_workers(-2)
