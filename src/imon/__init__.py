"""imon: work-session tracking service and client."""

__version__ = "0.3.0"
