"""Authentication and authorization.

Learn: Four pieces, composed as a pipeline per request:
1. jwt.TokenService → issues/verifies signed session tokens (pure, no I/O)
2. middleware.auth_gate → bearer token → IdentityContext on request.state
3. policy → IdentityContext + Requirement → allow / 401 / 403
4. verification.VerificationTokenManager → single-use account activation

Nothing here keeps server-side sessions; every request re-authenticates
from its own bearer token.
"""
