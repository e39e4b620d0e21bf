"""
Keihi - Expense Bookkeeping Core

Turns receipt photos and card/bank statement CSVs into bookkeeping
records for a sole proprietor's tax return.

DESIGN PRINCIPLES:
1. Heuristics suggest → Human confirms → System persists
2. Heuristics never fail, they degrade to defaults
3. Only I/O steps (decode, OCR, storage) can fail, and they fail visibly
4. Per-user state lives in an explicit session object
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Keihi Team"
