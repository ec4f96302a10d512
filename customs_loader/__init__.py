"""Spreadsheet -> PostgreSQL replace loader for customs trade records."""

__version__ = "0.1.0"
