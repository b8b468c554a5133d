"""Gatekeep — credential issuance and validation service.

Registers users, verifies their passwords, and issues/validates signed
bearer tokens carrying identity and role claims.
"""

__version__ = "0.1.0"
