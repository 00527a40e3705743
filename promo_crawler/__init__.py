"""Collect airline-miles promotions from a travel blog into SQLite."""

__version__ = "0.1.0"
