"""Authentication and token handling.

Three pieces:
1. Password hashing (bcrypt, per-record salt)
2. Token issuance: identity + role claims signed with HS256
3. Token validation: signature, issuer, audience, lifetime

The HTTP-facing dependencies live in auth.dependencies.
"""
