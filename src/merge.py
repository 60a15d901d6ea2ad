"""
Non-destructive defaults merge.

``merge(dst, src)`` fills the unset fields of ``dst`` from ``src`` and never
overwrites a field that is already set. The granularity is the field:

- scalar fields are copied when ``dst`` holds the zero value;
- optional fields are copied when ``dst`` is ``None``; a set optional value
  is left alone entirely, its nested fields are not backfilled;
- embedded sub-structures are merged recursively;
- lists and dicts are replaced wholesale when empty in ``dst``, there is no
  element-wise union.

Everything taken from ``src`` is deep-copied, so later changes to the merged
tree never reach the defaults it was filled from.
"""

import copy
import dataclasses
from typing import Any

from models import EMBEDDED


class MergeError(Exception):
    """Raised when the destination and source trees do not share a shape."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


def _is_unset(f: dataclasses.Field, value: Any) -> bool:
    if f.default is None:
        return value is None
    return value is None or not value


def merge(dst: Any, src: Any) -> None:
    """
    Merge ``src`` into ``dst`` in place.

    Args:
        dst: Dataclass instance receiving defaults
        src: Dataclass instance of the same type providing defaults

    Raises:
        MergeError: If the two values are not instances of the same dataclass
    """
    if not dataclasses.is_dataclass(dst) or isinstance(dst, type):
        raise MergeError(f"cannot merge into {type(dst).__name__}: not a dataclass")
    if type(dst) is not type(src):
        raise MergeError(
            f"cannot merge {type(src).__name__} into {type(dst).__name__}"
        )

    for f in dataclasses.fields(dst):
        dst_value = getattr(dst, f.name)
        src_value = getattr(src, f.name)

        if f.metadata.get(EMBEDDED):
            try:
                merge(dst_value, src_value)
            except MergeError as e:
                raise MergeError(f"{f.name}: {e.message}") from e
            continue

        if _is_unset(f, dst_value) and not _is_unset(f, src_value):
            setattr(dst, f.name, copy.deepcopy(src_value))
