"""
Ledger Viewer - Source Package

Client-side core of a personal-finance ledger viewer: accounts,
transactions, tags, and the needs/wants/savings balance breakdown.

DESIGN PRINCIPLES:
1. One store owns the cache; everyone else reads snapshots
2. Optimistic edits are tracked until the backend confirms them
3. A failed write is reverted, never left diverged
4. Every remote failure reaches the user through one path
5. The backend is swappable behind a typed interface
"""

__version__ = "1.0.0"
__author__ = "Ledger Viewer Team"
