"""Newsletter subscription and delivery backend."""

__version__ = "0.1.0"
