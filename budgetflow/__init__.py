"""
BudgetFlow - personal finance tracker.

Transactions, cash on hand, monthly special allocations and an investment
portfolio, with every summary figure recomputed from the raw records.
"""

__version__ = "0.1.0"
