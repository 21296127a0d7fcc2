"""Image analysis and metadata reconciliation worker for the image catalog."""

__version__ = "0.1.0"
