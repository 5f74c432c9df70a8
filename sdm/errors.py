"""
Exceptions raised by the species distribution model.
"""


class SDMError(ValueError):
    """Base class for all model errors."""


class InvalidInput(SDMError):
    """Data handed to an operation is malformed (shapes, labels, empty classes)."""


class InvalidConfiguration(SDMError):
    """An operation was configured with parameters it cannot honour."""


class NumericDegeneracy(SDMError):
    """A computation hit a zero variance, zero denominator or non-finite value."""
