"""Restore the daily stats backup from Scaleway Object Storage into MySQL."""

__version__ = "0.1.0"
