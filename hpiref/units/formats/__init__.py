"""
A package containing units for hierarchical data formats.
"""
from __future__ import annotations

import abc
import fnmatch
import re

from hpiref.lib.types import Callable, Iterable, Param, buf
from hpiref.units import Arg, Chunk, Unit


def pathspec(expression: str) -> str:
    """
    Normalizes a path which is separated by backward or forward slashes to be separated by forward
    slashes.
    """
    return '/'.join(re.split(R'[\\\/]', expression))


class UnpackResult:
    """
    An item produced by a `hpiref.units.formats.PathExtractorUnit`. The data can be given as a
    callable, in which case it is only computed when the item is actually extracted.
    """
    def get_data(self) -> buf:
        if callable(self.data):
            self.data = self.data()
        return self.data

    def __init__(self, _hr__path: str, _hr__data: buf | Callable[[], buf], **_hr__meta):
        self.path = _hr__path
        self.data = _hr__data
        self.meta = {key: value for key, value in _hr__meta.items() if value is not None}


class PathPattern:
    def __init__(self, query: str, regex=False):
        self.query = query
        self.regex = regex
        self.compile()

    def compile(self, **kw):
        query = self.query
        if not self.regex:
            query = re.sub(R'\\[Zz]$', '', fnmatch.translate(pathspec(query)))
        p1 = re.compile(query, **kw)
        self.matchers = [p1.fullmatch, p1.search]

    def check(self, path: str, fuzzy: int = 0):
        return self.matchers[min(fuzzy, 1)](path)

    def __repr__(self):
        return F'<PathPattern:{self.query}>'


class PathExtractorUnit(Unit, abstract=True):
    """
    This unit is a path extractor which extracts data from a hierarchical structure. Each extracted
    item is emitted as a separate chunk and has attached to it a meta variable that contains its
    path within the source structure. The positional arguments to the command are patterns that can
    be used to filter the extracted items by their path. To view only the paths of all chunks, use
    the listing switch:

        <this> --list < something
    """
    def __init__(
        self,
        *paths: Param[str, Arg.String(metavar='path', help=(
            'Wildcard pattern for the path of the item to be extracted. Each item is returned '
            'as a separate output of this unit. The default is a single wildcard, which means '
            'that every item will be extracted. If a given pattern matches no complete path, the '
            'unit searches for it as a substring. This can be disabled using the --exact switch.'))],
        list: Param[bool, Arg.Switch('-l',
            help='Return all matching paths as UTF8-encoded output chunks.')] = False,
        exact: Param[bool, Arg.Switch('-e',
            help='Path patterns never match on substrings.')] = False,
        regex: Param[bool, Arg.Switch('-r',
            help='Use regular expressions instead of wildcard patterns.')] = False,
        path: Param[str, Arg.String('-P', metavar='NAME', help=(
            'Name of the meta variable to receive the extracted path. The default value is '
            '"path".'))] = 'path',
        **keywords
    ):
        super().__init__(
            paths=paths,
            list=list,
            exact=exact,
            regex=regex,
            path=path,
            **keywords
        )

    def _patterns(self) -> list[PathPattern]:
        paths = self.args.paths
        if not paths:
            paths = ['.*'] if self.args.regex else ['*']
        for path in paths:
            self.log_debug('path:', path)
        return [PathPattern(path, self.args.regex) for path in paths]

    def _select(self, paths: list[str]) -> Iterable[int]:
        """
        Generate the indices of all selected paths, each index at most once. The patterns are
        processed in order. A pattern that matches no complete path is tried as a substring search
        unless the `--exact` switch is set.
        """
        done = set()
        for p in self._patterns():
            for fuzzy in range(2):
                found = self.args.exact
                for k, path in enumerate(paths):
                    if not p.check(path, fuzzy):
                        continue
                    found = True
                    if k in done:
                        continue
                    done.add(k)
                    yield k
                if found:
                    break

    @abc.abstractmethod
    def unpack(self, data: Chunk) -> Iterable[UnpackResult]:
        raise NotImplementedError

    def process(self, data: Chunk):
        results = [r for r in self.unpack(data)]
        metavar = self.args.path

        for result in results:
            result.path = pathspec(result.path)

        for k in self._select([result.path for result in results]):
            result = results[k]
            path = result.path
            if self.args.list:
                yield self.labelled(path.encode(self.codec), **result.meta)
                continue
            result.meta[metavar] = path
            chunk = result.get_data()
            self.log_debug(F'extraction success for {path}')
            yield self.labelled(chunk, **result.meta)
