from __future__ import annotations
import re
from typing import Optional

# ========================================
#           INPUT VALIDATION HELPERS
# ========================================
"""
Helpers the session state machine and the channel call to decide whether
user input may leave the client. Nothing here raises; callers decide what
an invalid value means for them.
"""

MAX_NAME_LENGTH = 20
TOKEN_LENGTH = 6
MAX_MESSAGE_LENGTH = 500

_TOKEN_RE = re.compile(r'^[A-Z0-9]{%d}$' % TOKEN_LENGTH)


def clean_name(raw: str) -> Optional[str]:
    """
    Returns the trimmed display name, or None when nothing is left.
    Input longer than MAX_NAME_LENGTH is cut the way the name field cuts it.
    """
    name = raw[:MAX_NAME_LENGTH].strip()
    return name or None


def normalize_token(raw: str) -> str:
    """
    Upper-cases a typed token. The server only knows upper-case tokens,
    so "ab12cd" and "AB12CD" name the same room.
    """
    return raw.upper()


def clip_token_input(raw: str) -> str:
    """What the token field holds after the user types ``raw``."""
    return normalize_token(raw)[:TOKEN_LENGTH]


def is_well_formed_token(token: str) -> bool:
    """
    True for six upper-case alphanumerics. Only used for logging; the
    backend is the authority on which tokens are valid.
    """
    return bool(_TOKEN_RE.fullmatch(token))


def clean_message(raw: str) -> Optional[str]:
    """
    Returns the trimmed message text when it may be sent:
    - non-empty after trimming
    - at most MAX_MESSAGE_LENGTH characters
    otherwise None.
    """
    text = raw.strip()
    if not text or len(text) > MAX_MESSAGE_LENGTH:
        return None
    return text
