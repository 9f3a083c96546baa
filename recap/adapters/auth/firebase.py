"""Firebase Authentication adapter.

Verifies Firebase ID tokens issued to the web client and maps the decoded
claims onto an Identity. Sign-in itself stays with Firebase.
"""

from __future__ import annotations

import logging
import os
from typing import Any

import firebase_admin
from firebase_admin import auth, credentials

from recap.core.ports.auth import Identity

logger = logging.getLogger(__name__)


def init_firebase(credentials_path: str | None = None, project_id: str | None = None) -> None:
    """
    Initialize the Firebase Admin SDK once per process.

    Uses the service-account file at credentials_path (or
    GOOGLE_APPLICATION_CREDENTIALS), falling back to application default
    credentials.
    """
    if firebase_admin._apps:
        return

    path = credentials_path or os.environ.get("GOOGLE_APPLICATION_CREDENTIALS")
    options = {"projectId": project_id} if project_id else None
    if path:
        firebase_admin.initialize_app(credentials.Certificate(path), options)
    else:
        firebase_admin.initialize_app(credentials.ApplicationDefault(), options)
    logger.info("Firebase Admin SDK initialized")


def identity_from_claims(claims: dict[str, Any]) -> Identity | None:
    uid = claims.get("uid") or claims.get("sub")
    if not uid:
        return None
    return Identity(id=str(uid), email=claims.get("email"), display_name=claims.get("name"))


class FirebaseTokenVerifier:
    """Turns a bearer ID token into an Identity (or None if invalid)."""

    def __init__(self, check_revoked: bool = False) -> None:
        self._check_revoked = check_revoked

    def verify(self, id_token: str) -> Identity | None:
        if not id_token:
            return None
        try:
            claims = auth.verify_id_token(id_token, check_revoked=self._check_revoked)
        except (
            auth.InvalidIdTokenError,
            auth.ExpiredIdTokenError,
            auth.RevokedIdTokenError,
            auth.CertificateFetchError,
            ValueError,
        ) as e:
            logger.info("Rejected ID token: %s", type(e).__name__)
            return None
        return identity_from_claims(claims)
