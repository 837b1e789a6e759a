"""
Foretrack - Source Package

Personal finance tracking: expenses, income, budgets, custom categories,
period analytics and AI-generated insights.

DESIGN PRINCIPLES:
1. Analytics are pure functions, recomputed on every request
2. Money is Decimal end to end
3. Every external failure degrades to a safe default
4. Every write is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Foretrack Team"
