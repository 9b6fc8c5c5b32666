"""Extract, chunk, embed, cache and track documents for retrieval."""

__version__ = "0.1.0"