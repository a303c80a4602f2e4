"""Authentication and sessions.

Two login paths resolve to the same kind of Identity row:
1. email/password → CredentialVerifier
2. Google → GoogleProvider exchange → FederatedIdentityResolver

Either way SessionManager turns the identity into a revocable session
token, and AccessGuard gates note operations on that token.
"""
