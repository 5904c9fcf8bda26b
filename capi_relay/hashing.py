"""
Normalized SHA-256 hashing of personally identifying fields.

The Conversions API matches identities on hashed values only, so every PII
field is normalized and hashed before it leaves the relay.
"""

import hashlib
import re
from typing import Any, Dict, Mapping, Optional

_NON_DIGITS = re.compile(r'\D')


def hash_value(value: str) -> str:
    """SHA-256 hex digest of the UTF-8 bytes of ``value``."""
    return hashlib.sha256(value.encode('utf-8')).hexdigest()


def normalize_email(email: str) -> str:
    return email.lower()


def normalize_phone(phone: str) -> str:
    return _NON_DIGITS.sub('', phone)


def normalize_name(name: str) -> str:
    return name.lower()


def hash_email(email: Optional[str]) -> Optional[str]:
    if not email:
        return None
    return hash_value(normalize_email(email))


def hash_phone(phone: Optional[str]) -> Optional[str]:
    if not phone:
        return None
    digits = normalize_phone(phone)
    if not digits:
        return None
    return hash_value(digits)


def hash_name(name: Optional[str]) -> Optional[str]:
    if not name:
        return None
    return hash_value(normalize_name(name))


def hash_user_data(user_data: Optional[Mapping[str, Any]]) -> Dict[str, str]:
    """
    Hash the identity fields sent by the client.

    Args:
        user_data: Mapping with any of ``email``, ``phone``, ``firstName``
            and ``lastName``.

    Returns:
        Dict with ``em``, ``ph``, ``fn`` and ``ln`` for the fields that were
        present and non-empty. Absent fields are left out, not hashed.
    """
    if not user_data:
        return {}

    hashed = {
        'em': hash_email(_as_str(user_data.get('email'))),
        'ph': hash_phone(_as_str(user_data.get('phone'))),
        'fn': hash_name(_as_str(user_data.get('firstName'))),
        'ln': hash_name(_as_str(user_data.get('lastName'))),
    }
    return {key: value for key, value in hashed.items() if value}


def _as_str(value: Any) -> Optional[str]:
    # Phone numbers sometimes arrive as JSON numbers
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)
