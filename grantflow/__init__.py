"""GrantFlow grant verification system."""

__version__ = "0.1.0"
