"""
Validation Package

Local input validation; rejected input yields a ValidationOutcome carrying
the reason instead of an exception.
"""

from budgetflow.validation.validator import InputValidator, ValidationOutcome

__all__ = ["InputValidator", "ValidationOutcome"]
