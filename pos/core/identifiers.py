import re
import uuid

_UUID_V4_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)


def generate_id() -> str:
    return str(uuid.uuid4())


def is_valid_uuid(value) -> bool:
    if not isinstance(value, str):
        return False
    return bool(_UUID_V4_RE.match(value))


__all__ = ["generate_id", "is_valid_uuid"]
