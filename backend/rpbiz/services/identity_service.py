# Overview: Bearer-token verification against the identity provider and the local user mirror.

"""
Identity Resolver

Bearer tokens are issued by an external identity provider (Supabase-style
auth API). A token is verified by calling the provider's user endpoint; the
verified claims are mirrored into the local users table.

To avoid a provider round-trip and a users-table write on every request,
a successful verification is cached in identity_sessions keyed by the
SHA-256 hash of the token. The cache entry expires after
IDENTITY_SESSION_TTL_SECONDS, or earlier if the token's own exp claim says
so. Until then the token is trusted without re-checking the provider;
logout revokes the entry immediately.

Profile fields are only ever taken from the provider's response, never
from request bodies.
"""

from __future__ import annotations

import base64
import hashlib
import json
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import httpx
from flask import current_app

from ..extensions import db
from ..models import IdentitySession, User
from rpbiz.time_utils import utcnow


class IdentityProviderError(Exception):
    """Raised when the identity provider is unreachable or misbehaves."""


class IdentityConflictError(Exception):
    """Raised when a verified email is already linked to another local user."""


@dataclass(frozen=True)
class VerifiedIdentity:
    """Claims returned by the identity provider for a valid token."""
    user_id: str
    email: str | None
    first_name: str
    last_name: str
    profile_image_url: str | None


@dataclass
class IdentityContext:
    user: User
    session: IdentitySession


def hash_token(token: str) -> str:
    """
    Hash token for database storage using SHA-256.

    Provider tokens are high-entropy, so a fast hash is sufficient.
    """
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def _claims_to_identity(payload: dict) -> VerifiedIdentity:
    user_id = payload.get("id")
    if not user_id:
        raise IdentityProviderError("Identity provider response missing user id")

    metadata = payload.get("user_metadata") or {}
    full_name = (metadata.get("full_name") or "").split()

    first_name = metadata.get("first_name") or (full_name[0] if full_name else "")
    last_name = metadata.get("last_name") or " ".join(full_name[1:])

    return VerifiedIdentity(
        user_id=str(user_id),
        email=payload.get("email") or None,
        first_name=first_name,
        last_name=last_name,
        profile_image_url=metadata.get("avatar_url") or metadata.get("picture") or None,
    )


def fetch_identity(token: str, *, transport: httpx.BaseTransport | None = None) -> VerifiedIdentity | None:
    """
    Ask the identity provider who owns ``token``.

    Returns None when the provider rejects the token (401/403).
    Raises IdentityProviderError when the provider cannot give an answer.
    """
    base_url = current_app.config.get("IDENTITY_PROVIDER_URL")
    if not base_url:
        raise IdentityProviderError("IDENTITY_PROVIDER_URL is not configured")

    headers = {
        "Authorization": f"Bearer {token}",
        "apikey": current_app.config.get("IDENTITY_PROVIDER_API_KEY", ""),
    }

    try:
        with httpx.Client(
            base_url=base_url,
            timeout=current_app.config.get("IDENTITY_PROVIDER_TIMEOUT", 5.0),
            transport=transport,
        ) as client:
            response = client.get("/auth/v1/user", headers=headers)
    except httpx.HTTPError as exc:
        raise IdentityProviderError(f"Identity provider request failed: {exc}") from exc

    if response.status_code in (401, 403):
        return None
    if response.status_code != 200:
        raise IdentityProviderError(f"Identity provider returned HTTP {response.status_code}")

    try:
        payload = response.json()
    except ValueError as exc:
        raise IdentityProviderError("Identity provider returned invalid JSON") from exc

    if not isinstance(payload, dict):
        raise IdentityProviderError("Identity provider returned an unexpected payload")

    return _claims_to_identity(payload)


def token_expiry(token: str) -> datetime | None:
    """
    Read the exp claim of a JWT without verifying it.

    Only used to shorten the cache window, never to trust a token.
    """
    parts = token.split(".")
    if len(parts) != 3:
        return None
    segment = parts[1] + "=" * (-len(parts[1]) % 4)
    try:
        claims = json.loads(base64.urlsafe_b64decode(segment))
        exp = int(claims["exp"])
        return datetime.fromtimestamp(exp, tz=timezone.utc).replace(tzinfo=None)
    except (ValueError, KeyError, TypeError, OverflowError, OSError):
        return None


def upsert_user(identity: VerifiedIdentity) -> User:
    """Create or refresh the local mirror of a verified identity (not committed)."""
    if identity.email:
        clash = db.session.query(User).filter(
            User.email == identity.email,
            User.id != identity.user_id,
        ).first()
        if clash:
            raise IdentityConflictError("Email already linked to another account")

    user = db.session.query(User).filter_by(id=identity.user_id).first()
    if user is None:
        user = User(id=identity.user_id)
        db.session.add(user)

    user.email = identity.email
    user.first_name = identity.first_name
    user.last_name = identity.last_name
    user.profile_image_url = identity.profile_image_url
    user.last_login_at = utcnow()
    return user


def _cached_session(token_hash: str) -> IdentitySession | None:
    return db.session.query(IdentitySession).filter(
        IdentitySession.token_hash == token_hash,
        IdentitySession.is_revoked.is_(False),
        IdentitySession.expires_at > utcnow(),
    ).first()


def resolve_identity(token: str) -> IdentityContext | None:
    """
    Resolve a bearer token to a local user.

    Returns None if the provider rejects the token.
    Raises IdentityProviderError / IdentityConflictError.
    """
    token_hash = hash_token(token)

    session = _cached_session(token_hash)
    if session is not None:
        return IdentityContext(user=session.user, session=session)

    identity = fetch_identity(token)
    if identity is None:
        return None

    now = utcnow()
    expires_at = now + timedelta(seconds=current_app.config.get("IDENTITY_SESSION_TTL_SECONDS", 300))
    token_exp = token_expiry(token)
    if token_exp is not None and token_exp < expires_at:
        expires_at = token_exp
    if expires_at <= now:
        return None

    try:
        user = upsert_user(identity)

        # A revoked or expired row for this token may still exist
        session = db.session.query(IdentitySession).filter_by(token_hash=token_hash).first()
        if session is None:
            session = IdentitySession(token_hash=token_hash)
            db.session.add(session)
        session.user = user
        session.created_at = now
        session.expires_at = expires_at
        session.is_revoked = False
        session.revoked_at = None
        session.revoked_reason = None

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    return IdentityContext(user=user, session=session)


def revoke_session(token: str, reason: str = "User logout") -> bool:
    """
    Revoke the cached verification of a token.

    Returns True if an active session was revoked.
    """
    session = db.session.query(IdentitySession).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()
    if not session:
        return False

    session.is_revoked = True
    session.revoked_at = utcnow()
    session.revoked_reason = reason
    db.session.commit()
    return True


def cleanup_expired_sessions() -> int:
    """Delete expired or revoked session rows. Returns count deleted."""
    deleted = db.session.query(IdentitySession).filter(
        db.or_(
            IdentitySession.expires_at < utcnow(),
            IdentitySession.is_revoked.is_(True),
        )
    ).delete(synchronize_session=False)
    db.session.commit()
    return deleted
