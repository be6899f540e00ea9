"""Compliance Ledger - audit retention and client compliance tracking."""

__version__ = "0.1.0"
