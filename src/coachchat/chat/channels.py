"""Deterministic channel ids for student/coach conversations."""

from __future__ import annotations

import hashlib

CHANNEL_TYPE = "messaging"
CHANNEL_PREFIX = "coaching-"
_DIGEST_LENGTH = 32


def channel_id_for(student_id: str, coach_id: str) -> str:
    """Channel id for a student/coach pair.

    Always the same for the same pair, fits the chat backend's 64-character
    limit, and uses a digest of both full ids rather than id prefixes.
    """
    digest = hashlib.sha256(f"{student_id}:{coach_id}".encode()).hexdigest()
    return f"{CHANNEL_PREFIX}{digest[:_DIGEST_LENGTH]}"


def resolve_pair(user_id: str, user_role: str, partner_id: str) -> tuple[str, str]:
    """Order (user, partner) as (student_id, coach_id) from the caller's role."""
    if user_role == "student":
        return user_id, partner_id
    if user_role == "coach":
        return partner_id, user_id
    msg = f"Invalid user role: {user_role}"
    raise ValueError(msg)
