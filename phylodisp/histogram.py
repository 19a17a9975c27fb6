"""Fixed-width histograms of weighted scalar values.

Used to summarize the EDPL values of an ensemble, but works for any
weighted per-pquery or per-edge scalar.

Bins are equal-width over [range_min, range_max]. Every bin is
left-inclusive and right-exclusive, except the last, which is closed on
both ends. Values outside the range are squeezed into the first or last
bin; NaN values count towards the first bin.
"""

from __future__ import annotations

import logging
import math

import numpy as np

logger = logging.getLogger(__name__)


class Histogram:
    """Equal-width histogram with weighted accumulation.

    Args:
        bins: Number of bins, > 0.
        range_min: Lower bound of the first bin.
        range_max: Upper bound of the last bin; finite and > range_min.

    Example:
        hist = Histogram(4, 0.0, 10.0)
        for x in [1, 3, 6, 9]:
            hist.accumulate(x)
        hist.values  # array([1., 1., 1., 1.])
    """

    def __init__(self, bins: int, range_min: float = 0.0, range_max: float = 1.0):
        if int(bins) != bins or bins <= 0:
            raise ValueError(f"Histogram needs a positive number of bins, got {bins}")
        range_min = float(range_min)
        range_max = float(range_max)
        if not (math.isfinite(range_min) and math.isfinite(range_max)):
            raise ValueError(f"Histogram range [{range_min}, {range_max}] is not finite")
        if range_max <= range_min:
            raise ValueError(f"Histogram range [{range_min}, {range_max}] is empty")

        self.range_min = range_min
        self.range_max = range_max
        self.values = np.zeros(int(bins))

    @property
    def bins(self) -> int:
        return len(self.values)

    @property
    def bin_width(self) -> float:
        return (self.range_max - self.range_min) / self.bins

    def bin_range(self, index: int) -> tuple[float, float]:
        if not 0 <= index < self.bins:
            raise IndexError(f"Bin {index} out of range for {self.bins} bins")
        start = self.range_min + index * self.bin_width
        end = self.range_max if index == self.bins - 1 else start + self.bin_width
        return start, end

    def bin_of(self, x: float) -> int:
        """Return the index of the bin that ``x`` falls into."""
        if math.isnan(x) or x < self.range_min:
            return 0
        if x >= self.range_max:
            return self.bins - 1
        index = int((x - self.range_min) / self.bin_width)
        return min(index, self.bins - 1)

    def accumulate(self, x: float, weight: float = 1.0) -> int:
        """Add ``weight`` to the bin of ``x`` and return that bin's index."""
        index = self.bin_of(float(x))
        self.values[index] += weight
        return index

    def sum(self) -> float:
        return float(np.sum(self.values))

    def __len__(self) -> int:
        return self.bins

    def __getitem__(self, index: int) -> float:
        return float(self.values[index])


def resolve_histogram_max(observed_max: float, user_max: float = -1.0) -> float:
    """Pick the upper bound of a histogram, warning about unhelpful choices.

    Args:
        observed_max: Largest value found in the data. May be -inf (no
            data), NaN, or 0.
        user_max: Requested upper bound; negative means "use observed_max".

    Returns:
        ``user_max`` if it is >= 0, otherwise ``observed_max``. A non-finite
        or zero ``observed_max`` is replaced by 1.0 first, so that all
        values end up in the first bin of a still valid histogram.
    """
    observed_max = float(observed_max)
    user_max = float(user_max)

    if user_max > 0.0 and user_max < 0.75 * observed_max:
        logger.warning(
            "The maximum value for the histogram (%g) is set to less than 75%% of the "
            "maximal value actually found (%g). Hence, all values in between will be "
            "collected in the highest bin of the histogram.",
            user_max, observed_max,
        )
    if user_max > 0.0 and user_max > 1.25 * observed_max:
        logger.warning(
            "The maximum value for the histogram (%g) is set to more than 125%% of the "
            "maximal value actually found (%g). Hence, the highest bins of the "
            "histogram will be empty.",
            user_max, observed_max,
        )
    if not math.isfinite(observed_max) or observed_max == 0.0:
        logger.warning(
            "The maximum value found is %g, indicating that all values are zero or "
            "invalid (e.g. all pqueries have a single placement location). Using 1.0 "
            "as the histogram maximum instead; all weight will be in the first bin.",
            observed_max,
        )
        observed_max = 1.0
    return user_max if user_max >= 0.0 else observed_max


def histogram_table(hist: Histogram) -> list[dict]:
    """Tabulate a histogram, one row per bin in ascending order.

    Returns:
        List of dicts with keys: bin, start, end, range, value, percentage,
        accumulated_value, accumulated_percentage. Percentages are
        fractions of the total weight (NaN when the total is 0).
    """
    total = hist.sum()
    rows = []
    accumulated = 0.0
    for i in range(hist.bins):
        start, end = hist.bin_range(i)
        value = hist[i]
        accumulated += value
        # The last bin also holds its upper bound.
        closing = "]" if i == hist.bins - 1 else ")"
        rows.append({
            "bin": i,
            "start": start,
            "end": end,
            "range": f"[{start:g}, {end:g}{closing}",
            "value": value,
            "percentage": value / total if total else float("nan"),
            "accumulated_value": accumulated,
            "accumulated_percentage": accumulated / total if total else float("nan"),
        })
    return rows


def edpl_histogram(result, bins: int = 25, user_max: float = -1.0) -> Histogram:
    """Histogram of all EDPL records of a result, weighted by multiplicity.

    Args:
        result: An ``EdplResult``.
        bins: Number of bins.
        user_max: Histogram upper bound; negative uses ``result.max_edpl``.
    """
    hist_max = resolve_histogram_max(result.max_edpl, user_max)
    hist = Histogram(bins, 0.0, hist_max)
    for _, record in result.rows():
        hist.accumulate(record.edpl, record.multiplicity)
    return hist
