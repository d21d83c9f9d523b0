"""
Budget Manager - Core Package

Business logic behind a personal budget dashboard: recurring obligations,
savings goal auto-contributions, budget analytics and account backups.

DESIGN PRINCIPLES:
1. Time is always injected - nothing in the core reads the clock on its own
2. Multi-step writes carry explicit compensating actions
3. Skips are results, failures are exceptions
4. Every materialization and import is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Budget Manager Team"
