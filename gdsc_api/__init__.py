"""
GDSC API - Student organization platform backend.

Authentication and session lifecycle: password credentials, GitHub/Google
federation, signed access tokens and server-persisted refresh tokens.
"""

__version__ = "0.1.0"
