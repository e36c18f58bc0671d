"""Inventory movement, ledger and warehouse selection services."""
