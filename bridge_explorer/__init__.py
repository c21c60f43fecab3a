"""
Bridge Explorer - read service over a cross-chain bridge ledger.

Transfers cross chains in three stages:
- Source chain deposit
- Relay (poly) confirmation
- Destination chain release

Each stage is written independently by the ingestion process. This package
only reads those records and correlates them into one transfer per deposit.
"""

__version__ = "0.1.0"
__author__ = "Bridge Explorer Team"
