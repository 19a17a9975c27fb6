"""Dispersion variant enumeration.

Expands the two user selectors (which edge values, which statistic) into the
ordered list of concrete variants that the dispersion reducer produces. Each
variant yields one output vector named ``<edge-kind>_<statistic>[_log]``.

Order of emission: masses before imbalances; within a kind the linear
statistics (sd, var, cv, vmr) come first, then their log-scaled
counterparts. Imbalances only support sd and var. The coefficient of
variation and the variance-to-mean ratio divide by the mean edge value,
which is meaningless for imbalances, so those are never emitted for that
kind, not even under ``all``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class EdgeValues(str, Enum):
    MASSES = "masses"
    IMBALANCES = "imbalances"


class DispersionMethod(str, Enum):
    STANDARD_DEVIATION = "sd"
    VARIANCE = "var"
    COEFFICIENT_OF_VARIATION = "cv"
    INDEX_OF_DISPERSION = "vmr"


EDGE_VALUE_SELECTORS = ("both", "masses", "imbalances")
METHOD_SELECTORS = (
    "all", "cv", "cv-log", "sd", "sd-log", "var", "var-log", "vmr", "vmr-log",
)

# Statistics applicable to each kind of edge values, in emission order.
_METHODS_PER_KIND = {
    EdgeValues.MASSES: (
        DispersionMethod.STANDARD_DEVIATION,
        DispersionMethod.VARIANCE,
        DispersionMethod.COEFFICIENT_OF_VARIATION,
        DispersionMethod.INDEX_OF_DISPERSION,
    ),
    EdgeValues.IMBALANCES: (
        DispersionMethod.STANDARD_DEVIATION,
        DispersionMethod.VARIANCE,
    ),
}


@dataclass(frozen=True)
class DispersionVariant:
    """One requested combination of edge values, statistic and scaling."""

    name: str
    edge_values: EdgeValues
    method: DispersionMethod
    log_scaling: bool = False

    @classmethod
    def create(
        cls, edge_values: EdgeValues, method: DispersionMethod, log_scaling: bool
    ) -> "DispersionVariant":
        name = f"{edge_values.value}_{method.value}"
        if log_scaling:
            name += "_log"
        return cls(name, edge_values, method, log_scaling)


def normalize_selector(value: str, allowed: tuple[str, ...], option: str) -> str:
    """Lower-case ``value`` and check that it is one of ``allowed``."""
    selector = str(value).strip().lower()
    if selector not in allowed:
        raise ValueError(
            f"Invalid {option} '{value}'; expected one of: {', '.join(allowed)}"
        )
    return selector


def selected_edge_values(edge_values: str) -> list[EdgeValues]:
    """Return the kinds of edge values selected by ``edge_values``, in run order."""
    selector = normalize_selector(edge_values, EDGE_VALUE_SELECTORS, "edge values")
    if selector == "both":
        return [EdgeValues.MASSES, EdgeValues.IMBALANCES]
    return [EdgeValues(selector)]


def get_variants(edge_values: str = "both", method: str = "all") -> list[DispersionVariant]:
    """Activate the dispersion variants selected by the two options.

    Args:
        edge_values: One of "masses", "imbalances" or "both".
        method: "all", or one of "sd", "var", "cv", "vmr", each optionally
            suffixed with "-log".

    Returns:
        Ordered list of DispersionVariant. May be empty, e.g. for
        ``edge_values="imbalances", method="cv"``; detecting that is up to
        the caller.

    Raises:
        ValueError: If either selector is not a known value.
    """
    kinds = selected_edge_values(edge_values)
    method = normalize_selector(method, METHOD_SELECTORS, "dispersion method")

    variants = []
    for kind in kinds:
        for log_scaling in (False, True):
            for stat in _METHODS_PER_KIND[kind]:
                token = stat.value + ("-log" if log_scaling else "")
                if method == "all" or method == token:
                    variants.append(DispersionVariant.create(kind, stat, log_scaling))
    return variants
