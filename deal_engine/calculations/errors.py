"""
Calculation Errors

Typed errors raised by the calculation engine when an input violates a
precondition. They subclass ValueError so callers that already handle
ValueError keep working.
"""


class CalculationError(ValueError):
    """Base class for all calculation engine errors."""


class InvalidTermsError(CalculationError):
    """Loan terms that cannot be amortized (non-positive principal/term, negative rate)."""


class InvalidParameterError(CalculationError):
    """Projection or aggregation parameters that are out of range."""
