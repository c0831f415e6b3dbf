"""Signed, short-lived QR tokens and race-safe attendance recording."""

__version__ = "0.1.0"
