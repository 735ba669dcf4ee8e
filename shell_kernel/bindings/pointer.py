"""
Pointer utility — read and write nested state by ``/a/b/c`` style paths.

Paths address nested mappings only; there are no array-index semantics.
``~1`` and ``~0`` inside a segment unescape to ``/`` and ``~``.
"""

from typing import Any


class _Absent:
    """Marker for a path that resolves to nothing (distinct from a stored None)."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "ABSENT"


ABSENT = _Absent()


def _unescape(token: str) -> str:
    return token.replace("~1", "/").replace("~0", "~")


def _split(path: str):
    return [_unescape(t) for t in path.split("/")[1:]]


def get_by_pointer(root: Any, path: str) -> Any:
    """Return the value at ``path``, or ``ABSENT`` if any segment is missing."""
    if root is None:
        return ABSENT
    if path == "":
        return root
    if not isinstance(path, str) or not path.startswith("/"):
        return ABSENT

    current = root
    for key in _split(path):
        if not isinstance(current, dict) or key not in current:
            return ABSENT
        current = current[key]
    return current


def set_by_pointer(root: Any, path: str, value: Any) -> bool:
    """
    Assign ``value`` at ``path``, creating missing intermediate dicts.

    Returns False for the root path, malformed paths, or when an existing
    intermediate value is not a mapping.
    """
    if not isinstance(root, dict):
        return False
    if not isinstance(path, str) or not path.startswith("/") or path == "/":
        return False

    tokens = _split(path)
    current = root
    for key in tokens[:-1]:
        if current.get(key) is None:
            current[key] = {}
        current = current[key]
        if not isinstance(current, dict):
            return False

    current[tokens[-1]] = value
    return True
