"""Workledger: worker attendance, payments and balances with safe backups."""

__version__ = "0.1.0"
