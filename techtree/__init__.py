"""Goal tech tree and daily journal with local key-value persistence."""

__version__ = "0.1.0"
