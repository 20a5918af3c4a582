"""
This module is used as a unified resource for various types that are primarily used for type hints.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from typing import (
        Annotated,
        Callable,
        Iterable,
        Union,
    )

    Param = Annotated
    buf = Union[bytes, bytearray, memoryview]

else:
    class __P:
        def __getitem__(self, annotation):
            return annotation[1]

    Param = __P()
    buf = Any

    Callable = Any
    Iterable = Any


__all__ = [
    'buf',
    'Callable',
    'isbuffer',
    'isstream',
    'Iterable',
    'Param',
]


def isstream(obj) -> bool:
    """
    Tests whether `obj` is a stream. This is currently done by simply testing whether the object
    has an attribute called `read`.
    """
    return hasattr(obj, 'read')


def isbuffer(obj) -> bool:
    """
    Test whether `obj` is an object that supports the buffer API, like a bytes or bytearray object.
    """
    try:
        with memoryview(obj):
            return True
    except TypeError:
        return False
