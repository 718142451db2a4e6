"""
Bearer Identity Verifiers

Adapters from an external identity provider to BearerIdentityVerifier:

- FirebaseBearerVerifier: Firebase Auth ID tokens, verified with google-auth
  against Google's published signing certificates.
- JwtBearerVerifier: HS256 identity tokens from a trusted internal issuer
  (local development and test deployments).

Token validation rules (signature, expiry, issuer, audience) belong to the
provider; the authentication core only sees "user id or invalid".
"""
import asyncio
import logging
from typing import Optional

import jwt
from google.auth import exceptions as google_exceptions
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token

from webtracker.core.auth.collaborators import BearerIdentityVerifier, CollaboratorUnavailable
from webtracker.core.config import Settings

logger = logging.getLogger(__name__)


class FirebaseBearerVerifier:
    """Verify Firebase Auth ID tokens for a given project."""

    def __init__(self, project_id: str, request: Optional[google_requests.Request] = None):
        if not project_id:
            raise ValueError("Firebase project id is required")
        self.project_id = project_id
        # Reused across calls so the certificate fetch keeps one HTTP session
        self._request = request or google_requests.Request()

    def _verify_sync(self, token: str) -> Optional[str]:
        try:
            claims = id_token.verify_firebase_token(token, self._request, audience=self.project_id)
        except google_exceptions.TransportError as e:
            raise CollaboratorUnavailable(f"Firebase certificate fetch failed: {e}") from e
        except (ValueError, google_exceptions.GoogleAuthError) as e:
            logger.info(f"Firebase token rejected: {e}")
            return None

        if not claims:
            return None
        return claims.get("sub") or claims.get("user_id")

    async def verify_bearer(self, token: str) -> Optional[str]:
        return await asyncio.to_thread(self._verify_sync, token)


class JwtBearerVerifier:
    """Verify HS256 identity tokens with strict issuer/audience checks."""

    def __init__(self, secret: str, issuer: str, audience: str, algorithm: str = "HS256"):
        if not secret:
            raise ValueError("JWT secret is required")
        self.secret = secret
        self.issuer = issuer
        self.audience = audience
        self.algorithm = algorithm

    async def verify_bearer(self, token: str) -> Optional[str]:
        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                issuer=self.issuer,
                audience=self.audience,
                options={"require": ["sub", "exp"]},
            )
        except jwt.ExpiredSignatureError:
            logger.info("Bearer token expired")
            return None
        except jwt.InvalidTokenError as e:
            logger.info(f"Bearer token rejected: {e}")
            return None
        return str(payload["sub"])


def build_bearer_verifier(settings: Settings) -> Optional[BearerIdentityVerifier]:
    """
    Construct the configured bearer verifier.

    Returns None when bearer authentication is disabled; signed device
    requests keep working in that case.
    """
    if settings.bearer_backend == "none":
        logger.warning("Bearer authentication disabled (BEARER_BACKEND=none)")
        return None

    if settings.bearer_backend == "jwt":
        return JwtBearerVerifier(
            secret=settings.jwt_secret or "",
            issuer=settings.jwt_issuer,
            audience=settings.jwt_audience,
            algorithm=settings.jwt_algorithm,
        )

    return FirebaseBearerVerifier(project_id=settings.firebase_project_id or "")
