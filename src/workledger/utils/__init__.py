"""Utility functions for workledger."""

from workledger.utils.date_parser import parse_date
from workledger.utils.amount_parser import parse_amount

__all__ = ["parse_date", "parse_amount"]
