"""
Net Worth Tracker - Core Package

Price fetching and CSV import for a personal net-worth tracker.

DESIGN PRINCIPLES:
1. A stale number beats no number (prices fall back to cache)
2. One bad row never blocks the rest of an import
3. Re-running an import is always safe
4. Every external call is retried, logged and auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Net Worth Tracker Team"
