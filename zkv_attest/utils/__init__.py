from .bytes import from_hex, is_hex, normalize_hex, to_hex  # noqa: F401
from .files import atomic_write, read_json, write_json_atomic  # noqa: F401

__all__ = [
    "to_hex", "from_hex", "normalize_hex", "is_hex",
    "atomic_write", "write_json_atomic", "read_json",
]
