"""
NexoraCrew Finance - Core Package

The data core of a small-business finance tracker: transactions,
bank cards and the team roster, backed by a REST API or by a local
demo store, plus the dashboard numbers derived from them.

DESIGN PRINCIPLES:
1. One storage contract, two backends, chosen once at startup
2. Dashboard numbers are derived on demand, never stored
3. Validate before writing, never after
4. Every user action is auditable
"""

__version__ = "1.0.0"
__author__ = "NexoraCrew Team"
