"""
Little Treasury - Source Package

A personal finance tracker: accounts in several currencies, income and
expenses with pending settlement, transfers, recurring payments and
Gemini-powered advice.

DESIGN PRINCIPLES:
1. The ledger core is pure; the session store is the only writer
2. A balance effect is applied exactly once
3. Every report is in one base currency
4. AI suggests, the ledger decides
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Little Treasury Team"
