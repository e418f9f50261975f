"""Jekyll-style static blog generator: posts, permalinks, pagination and archives."""

__all__ = ["__version__"]
__version__ = "0.1.0"
