"""
Miscellaneous helpers used by units and library modules.
"""
from __future__ import annotations

import inspect
import re


def documentation(unit):
    """
    Return the documentation string of a given unit as it should be displayed on the command line.
    References of the form `hpiref.lib.hpi.HPIArchive` are reduced to the last name component.
    """
    docs = inspect.getdoc(unit) or ''
    docs = re.sub(R'`hpiref\.(?:\w+\.)*(\w+)`', R'\1', docs)
    return docs.replace('`', '')


def exception_to_string(exception: BaseException, default=None) -> str:
    """
    Attempts to convert a given exception to a good description that can be exposed to the user.
    """
    if not exception.args:
        return exception.__class__.__name__
    it = (a for a in exception.args if isinstance(a, str))
    if default is None:
        default = str(exception)
    return max(it, key=len, default=default).strip()


def number(expression: str) -> int:
    """
    Parse an integer from the command line; any prefix understood by Python (`0x`, `0o`, `0b`)
    is accepted.
    """
    return int(expression, 0)
