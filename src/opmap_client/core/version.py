"""Version information for opmap-client."""

__version__ = "1.0.0"
