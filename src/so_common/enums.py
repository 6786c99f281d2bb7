"""Global enums."""

from enum import Enum


class ReferenceState(str, Enum):
    """Order reference lifecycle: UNALLOCATED -> ALLOCATED, one way."""
    UNALLOCATED = "UNALLOCATED"
    ALLOCATED = "ALLOCATED"
