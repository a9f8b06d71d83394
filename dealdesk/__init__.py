"""Deal Desk: deal flow and portfolio tracking API."""

__version__ = "0.1.0"
