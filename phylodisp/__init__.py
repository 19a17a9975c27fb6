"""phylodisp: dispersion and uncertainty statistics for phylogenetic placements.

Computes two families of descriptive statistics over an ensemble of
placement samples that share one reference tree:

    - Edge dispersion: how consistently edge masses or edge imbalances land
      on each branch across the samples (standard deviation, variance,
      coefficient of variation, index of dispersion), optionally prepared
      for log-scaled coloring.
    - EDPL: the expected distance between the candidate placement locations
      of every query, listed per query name and binned into a histogram.

Reading placement files, building the edge value matrices and drawing trees
are left to the caller; phylodisp consumes the tree topology and numeric
matrices and produces numeric vectors and tables.

Modules:
    base        -- Reference tree, placement data model and collaborator protocols
    errors      -- Exception taxonomy
    options     -- Run configuration dataclasses
    variants    -- Dispersion variant enumeration
    dispersion  -- Column-wise edge dispersion and color normalization
    distances   -- Node distance matrix and placement-to-placement distance
    edpl        -- EDPL metric and the file-parallel EDPL reducer
    histogram   -- Weighted fixed-width histograms
    output      -- CSV/JSON output sinks
"""

from phylodisp.base import (
    TreeEdge,
    ReferenceTree,
    PqueryPlacement,
    PqueryName,
    Pquery,
    Sample,
    PlacementProfile,
    SampleProvider,
    SampleList,
    OutputAdapter,
)
from phylodisp.errors import (
    PhylodispError,
    IncompatibleTreesError,
    ShapeMismatchError,
    InsufficientSamplesError,
    InternalError,
    OutputExistsError,
)
from phylodisp.options import DispersionOptions, EdplOptions, OutputOptions
from phylodisp.variants import DispersionVariant, DispersionMethod, EdgeValues, get_variants
from phylodisp.dispersion import (
    ColumnStats,
    DispersionVectors,
    ColorNormalization,
    column_mean_stddev,
    make_color_normalization,
    run_with_matrix,
    run_dispersion,
    write_dispersion,
)
from phylodisp.distances import node_branch_length_distance_matrix, placement_distance
from phylodisp.edpl import edpl, EdplRecord, EdplResult, EdplReducer, run_edpl
from phylodisp.histogram import Histogram, resolve_histogram_max, histogram_table, edpl_histogram
from phylodisp.output import DispersionTableOutput, write_edpl_list, write_histogram

__version__ = "0.1.0"

__all__ = [
    "TreeEdge",
    "ReferenceTree",
    "PqueryPlacement",
    "PqueryName",
    "Pquery",
    "Sample",
    "PlacementProfile",
    "SampleProvider",
    "SampleList",
    "OutputAdapter",
    "PhylodispError",
    "IncompatibleTreesError",
    "ShapeMismatchError",
    "InsufficientSamplesError",
    "InternalError",
    "OutputExistsError",
    "DispersionOptions",
    "EdplOptions",
    "OutputOptions",
    "DispersionVariant",
    "DispersionMethod",
    "EdgeValues",
    "get_variants",
    "ColumnStats",
    "DispersionVectors",
    "ColorNormalization",
    "column_mean_stddev",
    "make_color_normalization",
    "run_with_matrix",
    "run_dispersion",
    "write_dispersion",
    "node_branch_length_distance_matrix",
    "placement_distance",
    "edpl",
    "EdplRecord",
    "EdplResult",
    "EdplReducer",
    "run_edpl",
    "Histogram",
    "resolve_histogram_max",
    "histogram_table",
    "edpl_histogram",
    "DispersionTableOutput",
    "write_edpl_list",
    "write_histogram",
]
