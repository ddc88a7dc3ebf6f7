"""
Expense Ledger Sync - Source Package

An offline-first personal expense ledger that mirrors itself to a
Google Sheets spreadsheet the user can also edit by hand.

DESIGN PRINCIPLES:
1. The local ledger is authoritative - every change lands locally first
2. A local delete wins until the remote confirms it
3. Sync failures are reported, never raised, and always retryable
4. Every step must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Expense Ledger Team"
