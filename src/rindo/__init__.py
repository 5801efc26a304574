"""Rindo EXP ledger and token bridge API."""
