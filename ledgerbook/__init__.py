"""
Ledgerbook - Source Package

Multi-currency bookkeeping for a small circle of named persons:
receipts, payments, conversions, purchase orders, transfers and
delivery records.

DESIGN PRINCIPLES:
1. Balances are always derived, never stored
2. The ledger engine is pure - no I/O, no mutation of inputs
3. Invalid records are rejected before they reach the ledger
4. One bad stored record never blanks a whole report
5. Storage is swappable
"""

__version__ = "1.0.0"
__author__ = "Ledgerbook Team"
