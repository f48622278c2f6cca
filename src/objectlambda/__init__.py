"""S3 Object Lambda request transformer."""

__version__ = "0.1.0"
