"""Organization domain model — pure dataclass, no SQLAlchemy dependency."""

import re
from dataclasses import dataclass
from datetime import datetime

# Short codes prefix references ("6666-2024-12"), so they may not contain '-'.
_EXTERNAL_ID_RE = re.compile(r"^[A-Za-z0-9]{1,32}$")


@dataclass
class Organization:
    id: str
    external_id: str         # e.g. RSIN "002851234"
    short_code: str          # reference prefix
    last_reference_id: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None


def is_valid_external_id(external_id: str | None) -> bool:
    return bool(external_id) and bool(_EXTERNAL_ID_RE.match(external_id or ""))


def derive_short_code(external_id: str) -> str:
    """Short code used for organizations created on first order: the upper-cased external id."""
    return external_id.strip().upper()
