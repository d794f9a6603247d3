"""Invite code generation. Uniqueness is enforced by the store, not here."""

import secrets

from .constants import INVITE_CODE_ALPHABET, INVITE_CODE_LENGTH


def generate_invite_code(length: int = INVITE_CODE_LENGTH) -> str:
    return "".join(secrets.choice(INVITE_CODE_ALPHABET) for _ in range(length))


def normalize_invite_code(code: str) -> str:
    """Uppercase and strip user input before lookup."""
    return code.strip().upper()
