"""privgate proxy - FastAPI stock and orders services."""

__version__ = "0.1.0"
