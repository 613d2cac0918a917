"""UpSeller store-sales KPI extraction over a remote headless browser."""

__version__ = "0.1.0"
