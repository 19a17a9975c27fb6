"""Typed exceptions raised by phylodisp.

Fatal conditions abort the computation that detected them and no output is
written for it. Advisory conditions are never raised; they are logged as
warnings. Configuration errors are plain ``ValueError``.
"""

from __future__ import annotations


class PhylodispError(Exception):
    """Base phylodisp error."""


class IncompatibleTreesError(PhylodispError):
    """Samples of one ensemble were placed on different reference trees."""


class ShapeMismatchError(PhylodispError, ValueError):
    """A matrix does not fit the reference tree or another matrix."""


class InsufficientSamplesError(PhylodispError, ValueError):
    """Fewer than two samples were supplied to the dispersion reducer."""


class InternalError(PhylodispError, RuntimeError):
    """A contract between two phylodisp components was violated."""


class OutputExistsError(PhylodispError, FileExistsError):
    """An output file exists already and overwriting is not allowed."""
