R"""
The HPI refinery reads HPI archives, the resource containers of Total Annihilation and the games
that were built on its engine. The package is split into two layers:

1. `hpiref.lib.hpi` parses archives: It decrypts the directory, walks the directory tree and
   decodes the chunked file data. `hpiref.lib.decompression` implements the LZ77 variant used for
   compressed chunks.
2. `hpiref.units` exposes this functionality as units; every unit is a shell command and can be
   used within Python code through the pipe operator.

The package `hpiref` exports all units, and for convenience the classes `hpiref.units.Unit` and
`hpiref.units.Arg`. Units are imported on demand.
"""
from __future__ import annotations

__version__ = '0.3.1'
__distribution__ = 'hpi-refinery'

from hpiref.units import Arg, Unit

__units__ = {
    'hpilz'   : 'hpiref.units.compression.hpilz',
    'hpixor'  : 'hpiref.units.crypto.hpixor',
    'sqcrypt' : 'hpiref.units.crypto.sqcrypt',
    'sqsh'    : 'hpiref.units.compression.sqsh',
    'xthpi'   : 'hpiref.units.formats.archive.xthpi',
}
"""
Maps the name of every unit to the module that implements it.
"""

__all__ = sorted(__units__) + [Unit.__name__, Arg.__name__]


def load(name) -> type[Unit] | None:
    """
    Import and return the unit with the given name, or `None` if there is no such unit.
    """
    try:
        module_path = __units__[name]
    except KeyError:
        return None
    module = __import__(module_path, None, None, [name])
    return getattr(module, name)


def __getattr__(name):
    unit = load(name)
    if unit is None:
        raise AttributeError(name)
    return unit


def __dir__():
    return __all__
