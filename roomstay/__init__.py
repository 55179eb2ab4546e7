"""Room availability and reservation engine."""

__version__ = "1.0.0"
