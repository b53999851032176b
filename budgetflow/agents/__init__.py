"""
AI Agents Package

The insight agent is the only component that talks to the language model.
"""

from budgetflow.agents.insights import (
    EMPTY_RESPONSE_MESSAGE,
    UNAVAILABLE_MESSAGE,
    InsightAgent,
    InsightResult,
)

__all__ = [
    "EMPTY_RESPONSE_MESSAGE",
    "UNAVAILABLE_MESSAGE",
    "InsightAgent",
    "InsightResult",
]
