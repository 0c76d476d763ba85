"""
Subscription Tracker - Source Package

Tracks recurring subscriptions and computes billing facts from them:
next charges, monthly spend in a base currency, cost per use and
per-month breakdowns.

DESIGN PRINCIPLES:
1. The billing core is pure: "today" is always passed in
2. Fail loudly on corrupt records, never return partial totals
3. Missing exchange rates count as base currency, never an error
4. Every write is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Subscription Tracker Team"
