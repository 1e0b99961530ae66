"""Cloud Search index writer for crawled documents."""

__version__ = "0.1.0"
