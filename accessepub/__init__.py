"""Browser-based accessibility checking for EPUB content documents."""

__version__ = "0.1.0"
