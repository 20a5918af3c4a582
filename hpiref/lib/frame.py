"""
Units consume and produce chunks: A `hpiref.lib.frame.Chunk` is a `bytearray` that carries a
dictionary of metadata. Extractors use this dictionary to attach the path of an extracted item to
the corresponding output. Metadata is inherited by the outputs of any unit that processes a chunk.
"""
from __future__ import annotations

from typing import Any


class Chunk(bytearray):
    """
    A `bytearray` with an attached dictionary of metadata.
    """
    def __init__(self, data=B'', meta: dict[str, Any] | None = None):
        super().__init__(data)
        self.meta: dict[str, Any] = dict(meta or ())

    def inherit(self, parent: Chunk):
        """
        Copy all metadata from the parent that is not already set on this chunk.
        """
        for key, value in parent.meta.items():
            self.meta.setdefault(key, value)
        return self

    def __repr__(self):
        return F'<chunk:{len(self)}:{self.meta!r}>'
