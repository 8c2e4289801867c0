"""StockX to eBay cross-listing service."""

__version__ = "0.1.0"
