import hashlib
import json
from typing import Any, Mapping


def canonical_json(form_data: Mapping[str, Any]) -> bytes:
    """Serialize with sorted keys and no insignificant whitespace."""
    return json.dumps(
        form_data,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    ).encode("utf-8")


def digest(form_data: Mapping[str, Any]) -> str:
    """SHA-256 tamper-evidence digest of a form payload."""
    return hashlib.sha256(canonical_json(form_data or {})).hexdigest()


def verify(submission) -> bool:
    """True when the stored hash still matches the stored form data."""
    return submission.content_hash == digest(submission.form_data)
