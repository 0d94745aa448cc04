"""
Finance Tracker - Source Package

Monthly income/expense ledger with carry-forward balances and
AI-generated spending insights.

DESIGN PRINCIPLES:
1. Totals are always derived, never hand-edited
2. Every mutation fully applies or leaves no trace
3. One Month document is the unit of change
4. Every mutation is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Finance Tracker Team"
