"""
Minabung - Source Package

Backend core for a shared household budgeting app. Users register,
form or join groups through invite codes, and track incomes, expenses
and category budgets together.

DESIGN PRINCIPLES:
1. Every ledger change goes through its owning group
2. Check membership first, write once
3. Fail loudly with a human-readable message
4. Every mutation is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Minabung Team"
