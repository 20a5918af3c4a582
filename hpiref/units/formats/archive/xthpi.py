#!/usr/bin/env python3
# -*- coding: utf-8 -*-
from __future__ import annotations

from hpiref.lib.hpi import HPI_MAGIC, HPIArchive
from hpiref.lib.structures import StructReader
from hpiref.lib.types import Param
from hpiref.units import Arg, Chunk
from hpiref.units.formats import PathExtractorUnit, UnpackResult, pathspec


class xthpi(PathExtractorUnit):
    """
    Extract files from an HPI archive, the resource container format of Total Annihilation and
    related games. By default, every file of the archive is emitted as a separate chunk and its
    path within the archive is stored in a meta variable. When an output directory is given, the
    directory tree of the archive is instead written to disk below that directory.
    """
    def __init__(
        self, *paths, list=False, exact=False, regex=False, path='path',
        output: Param[str | None, Arg.String('-o', metavar='DIR', help=(
            'Write all matching files below this directory instead of emitting them; the output '
            'of the unit is the list of paths that were written.'))] = None,
        depth: Param[int | None, Arg.Number('-m', help=(
            'Maximum nesting depth of directories in the archive. The default is read from the '
            'environment variable HPIREF_MAX_DEPTH and is 64 if it is not set.'))] = None,
    ):
        super().__init__(
            *paths,
            list=list,
            exact=exact,
            regex=regex,
            path=path,
            output=output,
            depth=depth,
        )

    def _open(self, data: Chunk) -> HPIArchive:
        archive = HPIArchive(StructReader(memoryview(data)), self.args.depth)
        header = archive.header
        self.log_debug(F'parsed archive header: {header!r}')
        if archive.saved_game:
            self.log_info('archive is a saved game')
        if not archive.key:
            self.log_info('archive is not encrypted')
        return archive

    def unpack(self, data: Chunk):
        archive = self._open(data)
        for entry in archive.files():
            def extract(archive=archive, entry=entry):
                return archive.read(entry)
            yield UnpackResult(entry.path, extract)

    def process(self, data: Chunk):
        root = self.args.output
        if root is None:
            yield from super().process(data)
            return
        archive = self._open(data)
        paths = [pathspec(entry.path) for entry in archive.files()]
        selected = {paths[k] for k in self._select(paths)}
        for path in archive.extract_all(root, lambda p: pathspec(p) in selected):
            self.log_info(F'wrote {path}')
            yield path.encode(self.codec)

    @property
    def framebreak(self) -> bool:
        return super().framebreak or self.args.output is not None

    @classmethod
    def handles(cls, data) -> bool:
        return data[:4] == HPI_MAGIC.to_bytes(4, 'little')
