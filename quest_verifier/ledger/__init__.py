"""Ledger access: web3 clients, the per-contract pool and retried log queries."""

from .client import LedgerClient
from .pool import LedgerClientPool
from .query import QueryStats, query_with_retry

__all__ = ["LedgerClient", "LedgerClientPool", "QueryStats", "query_with_retry"]
