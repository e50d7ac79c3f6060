"""Identifier generation for videos, collections and sessions."""

import random

from ulid import ULID

from cliprep.domain.constants import COLLECTION_COLORS


def generate_id() -> str:
    """Generate a sortable unique ID using ULID."""
    return str(ULID())


def pick_collection_color() -> str:
    return random.choice(COLLECTION_COLORS)
