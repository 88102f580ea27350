from __future__ import annotations

from uuid import uuid4


def new_id(prefix: str) -> str:
    """Collision-resistant record id such as ``offline_3f2a...``."""
    return f"{prefix}_{uuid4().hex}"


def email_user_id(email: str) -> str:
    return "user_" + email.replace("@", "_", 1).replace(".", "_", 1)
