"""Polymarket Insider Finder - wallet scanning, reconciliation and badging."""

__version__ = "0.1.0"
