"""Reconciliation between the local ledger and the remote table."""

from src.sync.engine import ReconciliationEngine, index_id_column

__all__ = ["ReconciliationEngine", "index_id_column"]
