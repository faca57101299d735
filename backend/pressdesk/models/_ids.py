import uuid


def new_id() -> str:
    """Opaque row identifier used when a caller inserts without one."""
    return uuid.uuid4().hex
