from __future__ import annotations

import uuid


def new_id() -> str:
    """Return a random, opaque identifier for a new document."""
    return str(uuid.uuid4())
