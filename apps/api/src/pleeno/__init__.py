"""Pleeno API - agency management for international student placement."""

__version__ = "0.1.0"
