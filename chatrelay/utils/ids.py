"""Identifier generation."""

from cuid2 import cuid_wrapper

cuid = cuid_wrapper()


def new_id() -> str:
    """Generate a collision-resistant CUID."""
    return cuid()
