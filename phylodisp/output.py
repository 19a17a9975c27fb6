"""CSV and JSON output sinks.

Table layouts:

    EDPL list (one row per record, input-file order)::

        Sample,Pquery,Multiplicity,EDPL

    Histogram (one row per bin, ascending)::

        Bin,Start,End,Range,Value,Percentage,Accumulated Value,Accumulated Percentage

    Dispersion table (one row per edge, one column per variant)::

        Edge,masses_sd,masses_var,...

    plus a JSON sidecar describing each variant's scaling and normalization.
"""

from __future__ import annotations

import csv
import json
from dataclasses import asdict
from pathlib import Path

import numpy as np

from phylodisp.histogram import Histogram, histogram_table

EDPL_LIST_HEADER = ["Sample", "Pquery", "Multiplicity", "EDPL"]
HISTOGRAM_HEADER = [
    "Bin", "Start", "End", "Range", "Value", "Percentage",
    "Accumulated Value", "Accumulated Percentage",
]


class NumpyEncoder(json.JSONEncoder):
    """JSON encoder that handles numpy types."""

    def default(self, obj):
        if isinstance(obj, np.ndarray):
            return obj.tolist()
        if isinstance(obj, (np.integer,)):
            return int(obj)
        if isinstance(obj, (np.floating,)):
            return float(obj)
        if isinstance(obj, (np.bool_,)):
            return bool(obj)
        return super().default(obj)


def write_edpl_list(result, path: str | Path) -> int:
    """Write the per-record EDPL list of an ``EdplResult``; returns the row count."""
    n_rows = 0
    with open(path, "w", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(EDPL_LIST_HEADER)
        for file_name, record in result.rows():
            writer.writerow([file_name, record.name, record.multiplicity, record.edpl])
            n_rows += 1
    return n_rows


def write_histogram(hist: Histogram, path: str | Path) -> None:
    with open(path, "w", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(HISTOGRAM_HEADER)
        for row in histogram_table(hist):
            writer.writerow([
                row["bin"], row["start"], row["end"], row["range"], row["value"],
                row["percentage"], row["accumulated_value"], row["accumulated_percentage"],
            ])


class DispersionTableOutput:
    """OutputAdapter that collects dispersion vectors into one table.

    Example:
        table = DispersionTableOutput()
        run_dispersion(profile, options, output=table)
        table.save("dispersion.csv", "dispersion.json")
    """

    def __init__(self):
        self.columns: dict[str, np.ndarray] = {}
        self.meta: dict[str, dict] = {}
        self.edge_count: int | None = None

    def write(self, variant, values, normalization, tree) -> None:
        values = np.asarray(values, dtype=np.float64)
        if self.edge_count is None:
            self.edge_count = tree.edge_count
        if len(values) != self.edge_count:
            raise ValueError(
                f"Variant {variant.name} has {len(values)} values, "
                f"expected {self.edge_count}"
            )
        self.columns[variant.name] = values
        self.meta[variant.name] = {
            "edge_values": variant.edge_values.value,
            "method": variant.method.value,
            "log_scaling": variant.log_scaling,
            "normalization": asdict(normalization),
        }

    def save(self, csv_path: str | Path, json_path: str | Path | None = None) -> None:
        names = list(self.columns)
        with open(csv_path, "w", newline="") as f:
            writer = csv.writer(f)
            writer.writerow(["Edge"] + names)
            for edge in range(self.edge_count or 0):
                writer.writerow([edge] + [self.columns[n][edge] for n in names])
        if json_path is not None:
            with open(json_path, "w") as f:
                json.dump({"variants": self.meta}, f, cls=NumpyEncoder, indent=2)
