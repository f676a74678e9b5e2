"""Canonical ID factory."""

from __future__ import annotations

import uuid


def new_id() -> str:
    """Generate a new UUID v4 string.  Used for request IDs."""
    return str(uuid.uuid4())

