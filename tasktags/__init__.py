"""Task & Tag Service - multi-user tasks with a shared, canonical tag vocabulary."""

__version__ = "1.0.0"
