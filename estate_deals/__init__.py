"""Property cycle and deal settlement engine for real-estate brokerages."""

__version__ = "0.1.0"
