"""Report on recently created Microsoft 365 users."""

__version__ = "0.1.0"
