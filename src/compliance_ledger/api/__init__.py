"""HTTP surface of the compliance ledger."""
