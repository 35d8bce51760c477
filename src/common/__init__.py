"""
Common utilities for the encrypted health-metrics client.

Modules:
- signed: two's-complement normalization of uint32 wire values
"""

__all__ = [
    "signed",
]
