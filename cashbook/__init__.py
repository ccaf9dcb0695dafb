"""
Cashbook - Ledger Engine

Multi-channel cashbook for a small recyclables business: money in and
out of mobile money, cash, bank and business-profit channels, internal
transfers between them, and inventory purchases and sales that post to
the cashbook automatically.

DESIGN PRINCIPLES:
1. Balances are derived, never stored
2. Fail early, fail visibly (validate before any write)
3. No silent corrections
4. Every money movement must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Cashbook Team"
