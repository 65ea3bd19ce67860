"""Index a music folder into a queryable album catalog."""

__version__ = "0.1.0"
