"""Run one external command per item with bounded concurrency and retries."""

__version__ = "0.1.0"
