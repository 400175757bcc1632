"""
Exception types for grid processing and grid file ingestion.

Numeric anomalies (NaN, infinity) are never raised; they are turned into
void cells by the operators that produce them.
"""


class InvalidArgument(ValueError):
    """Raised when a grid or operator precondition is violated."""

    pass


class ShapeMismatch(InvalidArgument):
    """Raised when grids that must be identical in size are not."""

    pass


class GridReadError(IOError):
    """Base class for failures while reading a grid file."""

    pass


class InvalidHeader(GridReadError):
    """Raised when a grid header is missing required keys or has bad values."""

    pass


class CorruptGrid(GridReadError):
    """Raised when a grid body does not hold exactly rows x cols numbers."""

    pass
