"""
Exception hierarchy for street network generation.
"""


class StreetGeneratorError(Exception):
    """Base class for all generator errors."""


class PreconditionError(StreetGeneratorError):
    """Required upstream geometry or state is missing; the pass is aborted."""


class GeoInputError(StreetGeneratorError):
    """Externally supplied geographic features are malformed."""


class DegenerateGeometryError(StreetGeneratorError):
    """A polygon or polyline is too small to work with.

    Raised by geometry helpers; callers log a warning and skip the candidate.
    """
