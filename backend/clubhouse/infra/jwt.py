"""JWT helpers for access tokens issued by the identity service.

Tokens are HS256 signed with the shared secret. Only decoding lives here; this
service never issues tokens.
"""

from __future__ import annotations

import jwt
from jwt import InvalidTokenError

from clubhouse.settings import settings


ISSUER = "clubhouse-identity"
AUDIENCE = "clubhouse-api"


def decode_access(token: str) -> dict[str, object]:
	"""Decode and validate an access token.

	Raises jwt.InvalidTokenError subclasses on failure.
	"""
	payload = jwt.decode(
		token,
		settings.secret_key,
		algorithms=["HS256"],
		audience=AUDIENCE,
		issuer=ISSUER,
		leeway=5,
		options={"require": ["exp", "iat", "iss", "aud", "sub"]},
	)
	if not str(payload.get("sub") or "").strip():
		raise InvalidTokenError("missing_claim:sub")
	return payload
