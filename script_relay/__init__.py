"""Relay that re-serves the SouliTEK installer script from a first-party domain."""

__version__ = "1.0.0"
