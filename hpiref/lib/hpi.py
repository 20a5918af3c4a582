"""
Parsing of HPI archives, the resource containers used by Total Annihilation and several games
built on its engine. An archive consists of a short plain header followed by a directory region and
the file data. Everything after the header is obfuscated with a position dependent XOR keystream.
File data is stored as a sequence of independently compressed SQSH chunks, each of which holds up
to 64 KiB of decompressed data and may additionally be encrypted with a chunk level cipher.
"""
from __future__ import annotations

import io
import os
import os.path
import zlib

from enum import IntEnum
from typing import BinaryIO, Callable, Iterator, NamedTuple

from Cryptodome.Util.strxor import strxor

from hpiref.lib.decompression import lz_window_decompress
from hpiref.lib.environment import environment
from hpiref.lib.exceptions import (
    HPIBadMagic,
    HPIDecodeError,
    HPIDirectoryCycle,
    HPIFormatError,
    HPIShortChunk,
    HPITruncated,
    HPIUnknownCompression,
    HPIUnterminatedName,
)
from hpiref.lib.structures import EOF, Struct, StructReader
from hpiref.lib.types import buf, isbuffer

HPI_MAGIC = 0x49504148
"""
The marker at the beginning of every archive; `HAPI` in ASCII.
"""
SAVED_GAME = 0x4B4E4142
"""
The value of the second header field when the archive is a saved game; `BANK` in ASCII.
"""
CHUNK_MAGIC = 0x48535153
"""
The marker that begins every chunk header; `SQSH` in ASCII.
"""

CHUNK_SIZE = 0x10000
HEADER_SIZE = 20
ENTRY_SIZE = 9
MAX_DEPTH = 64
NAME_CODEC = 'latin1'


class CompressionMethod(IntEnum):
    NONE = 0
    LZ77 = 1
    ZLIB = 2


def derive_key(seed: int) -> int:
    """
    Compute the single byte keystream key from the raw key field of the archive header.
    """
    return ((seed << 2) | (seed >> 6)) & 0xFF


def hpi_keystream(data: buf, key: int, offset: int) -> buf:
    """
    Apply the archive keystream to `data`, which is assumed to have been read from the absolute
    archive position `offset`. Byte `k` is combined with `((offset + k) & 0xFF) ^ key`. The
    operation is its own inverse. A key of zero means that the archive is not encrypted, in this
    case the input is returned unchanged.
    """
    if not key:
        return data
    size = len(data)
    if not size:
        return bytearray()
    phase = offset & 0xFF
    block = bytes(((phase + k) & 0xFF) ^ key for k in range(0x100))
    stream = block * ((size >> 8) + 1)
    return bytearray(strxor(bytes(data), stream[:size]))


def read_and_decrypt(source: BinaryIO, key: int, size: int, offset: int) -> buf:
    """
    Read `size` bytes from the absolute position `offset` of the archive and decrypt them with the
    archive keystream.
    """
    source.seek(offset, io.SEEK_SET)
    data = source.read(size)
    if len(data) < size:
        raise HPITruncated(size, len(data), offset)
    return hpi_keystream(data, key, offset)


def chunk_decrypt(data: buf) -> bytearray:
    """
    Undo the chunk level cipher: Byte `k` of the payload is decrypted as `(c - k) ^ k`, where all
    arithmetic is modulo 256.
    """
    output = bytearray(data)
    for k, c in enumerate(output):
        i = k & 0xFF
        output[k] = ((c - i) & 0xFF) ^ i
    return output


def chunk_encrypt(data: buf) -> bytearray:
    """
    The inverse of `hpiref.lib.hpi.chunk_decrypt`.
    """
    output = bytearray(data)
    for k, p in enumerate(output):
        i = k & 0xFF
        output[k] = ((p ^ i) + i) & 0xFF
    return output


class HPIHeader(Struct):

    def __init__(self, reader: StructReader[memoryview]):
        (
            self.marker,
            self.save,
            self.directory_size,
            self.seed,
            self.start,
        ) = reader.read_struct('5I')
        if self.marker != HPI_MAGIC:
            raise HPIBadMagic('archive', self.marker, HPI_MAGIC, 0)

    @property
    def key(self) -> int:
        return derive_key(self.seed)

    @property
    def saved_game(self) -> bool:
        return self.save == SAVED_GAME

    def __repr__(self):
        return (
            F'<hpi:start=0x{self.start:08X},end=0x{self.directory_size:08X},'
            F'key=0x{self.key:02X},save=0x{self.save:08X}>')


class DirectoryEntry(Struct):

    def __init__(self, reader: StructReader[memoryview]):
        self.name_offset, self.data_offset, self.flag = reader.read_struct('IIB')

    @property
    def is_directory(self) -> bool:
        return self.flag == 1


class FileMetadata(Struct):

    def __init__(self, reader: StructReader[memoryview]):
        self.data_offset, self.size, self.method = reader.read_struct('IIB')

    @property
    def chunk_count(self) -> int:
        return -(-self.size // CHUNK_SIZE)


class ChunkHeader(Struct):

    def __init__(self, reader: StructReader[memoryview]):
        (
            self.marker,
            self.reserved,
            self.method,
            self.encrypted,
            self.compressed_size,
            self.decompressed_size,
            self.checksum,
        ) = reader.read_struct('IBBBIII')


class HPIChunk(Struct):
    """
    A chunk record: The header followed by its compressed payload. The payload is decrypted with
    the chunk cipher if the header says so, but it is not decompressed. The `base` argument is the
    absolute archive offset of the reader's first byte and is only used for error messages.
    """
    def __init__(self, reader: StructReader[memoryview], base: int = 0):
        self.offset = offset = base + reader.tell()
        try:
            self.header = header = ChunkHeader(reader)
        except EOF as E:
            raise HPIFormatError('chunk header is truncated', offset) from E
        if header.marker != CHUNK_MAGIC:
            raise HPIBadMagic('chunk', header.marker, CHUNK_MAGIC, offset)
        data = reader.read(header.compressed_size)
        if len(data) != header.compressed_size:
            raise HPIShortChunk(header.compressed_size, len(data), offset)
        if header.encrypted:
            data = chunk_decrypt(data)
        self.data = data

    @property
    def method(self) -> int:
        return self.header.method


def decode_chunk(chunk: HPIChunk) -> buf:
    """
    Decompress the payload of a chunk according to its compression method.
    """
    method = chunk.method
    if method == CompressionMethod.NONE:
        return chunk.data
    if method == CompressionMethod.LZ77:
        return lz_window_decompress(chunk.data, chunk.header.decompressed_size)
    if method == CompressionMethod.ZLIB:
        limit = chunk.header.decompressed_size
        inflater = zlib.decompressobj()
        try:
            output = inflater.decompress(chunk.data, limit + 1)
        except zlib.error as E:
            raise HPIDecodeError(F'failed to inflate chunk at offset 0x{chunk.offset:08X}: {E!s}') from E
        if len(output) > limit:
            raise HPIDecodeError(
                F'chunk at offset 0x{chunk.offset:08X} inflates to more than its declared size of {limit} bytes')
        if not inflater.eof:
            raise HPIDecodeError(F'deflate stream of chunk at offset 0x{chunk.offset:08X} is truncated')
        return output
    raise HPIUnknownCompression(method, chunk.offset)


class HPIEntry(NamedTuple):
    """
    An item of the archive directory. For a directory, `offset` points to its directory node; for
    a file, it points to the file's metadata record.
    """
    path: str
    offset: int
    is_directory: bool


class HPIArchive:
    """
    An opened HPI archive. The archive source can be any seekable binary stream or a buffer. The
    directory region is decrypted once during initialization and kept in memory, padded at the
    front so that all directory offsets remain absolute archive offsets. File data is read from the
    source and decrypted on demand.
    """

    def __init__(self, source: BinaryIO | buf, max_depth: int | None = None):
        if isbuffer(source):
            source = StructReader(memoryview(source))
        if max_depth is None:
            max_depth = environment.max_depth.value or MAX_DEPTH
        self.source = source
        self.max_depth = max_depth
        source.seek(0, io.SEEK_SET)
        head = source.read(HEADER_SIZE)
        if len(head) < HEADER_SIZE:
            raise HPITruncated(HEADER_SIZE, len(head), 0)
        self.header = header = HPIHeader.Parse(memoryview(head))
        size = source.seek(0, io.SEEK_END)
        if not HEADER_SIZE <= header.start <= header.directory_size <= size:
            raise HPIFormatError(
                F'directory region 0x{header.start:08X}-0x{header.directory_size:08X} does not lie '
                F'within the archive of size 0x{size:08X}')
        self.key = header.key
        region = read_and_decrypt(source, self.key, header.directory_size - header.start, header.start)
        directory = bytearray(header.start)
        directory.extend(region)
        self.directory = StructReader(memoryview(directory))

    @property
    def saved_game(self) -> bool:
        return self.header.saved_game

    def _read_name(self, offset: int) -> str:
        self.directory.seekset(offset)
        try:
            name = self.directory.read_c_string(NAME_CODEC)
        except EOF as E:
            raise HPIUnterminatedName(offset) from E
        parts = name.replace('\\', '/').split('/')
        if not name or name.startswith(('/', '\\')) or '..' in parts:
            raise HPIFormatError(F'invalid entry name {name!r}', offset)
        return name

    def _listing(self, offset: int, parent: str, visited: set[int]) -> Iterator[HPIEntry]:
        if offset in visited:
            raise HPIDirectoryCycle(F'directory node for {parent!r} was already visited', offset)
        visited.add(offset)
        directory = self.directory
        directory.seekset(offset)
        try:
            count, table = directory.read_struct('II')
        except EOF as E:
            raise HPIFormatError('directory node is truncated', offset) from E
        for k in range(count):
            position = table + k * ENTRY_SIZE
            directory.seekset(position)
            try:
                entry = DirectoryEntry(directory)
            except EOF as E:
                raise HPIFormatError(F'entry {k} of {count} is truncated', position) from E
            name = self._read_name(entry.name_offset)
            path = F'{parent}/{name}' if parent else name
            yield HPIEntry(path, entry.data_offset, entry.is_directory)

    def walk(self) -> Iterator[HPIEntry]:
        """
        Iterate all entries of the directory tree in depth-first order; every directory is listed
        before its contents.
        """
        visited: set[int] = set()
        stack = [self._listing(self.header.start, '', visited)]
        while stack:
            try:
                entry = next(stack[-1])
            except StopIteration:
                stack.pop()
                continue
            yield entry
            if not entry.is_directory:
                continue
            if len(stack) > self.max_depth:
                raise HPIDirectoryCycle(
                    F'directory {entry.path!r} exceeds the maximum nesting depth of {self.max_depth}', entry.offset)
            stack.append(self._listing(entry.offset, entry.path, visited))

    def files(self) -> Iterator[HPIEntry]:
        for entry in self.walk():
            if not entry.is_directory:
                yield entry

    def metadata(self, entry: HPIEntry) -> FileMetadata:
        if entry.is_directory:
            raise IsADirectoryError(entry.path)
        self.directory.seekset(entry.offset)
        try:
            return FileMetadata(self.directory)
        except EOF as E:
            raise HPIFormatError(F'metadata of {entry.path!r} is truncated', entry.offset) from E

    def chunks(self, entry: HPIEntry) -> Iterator[HPIChunk]:
        """
        Iterate the chunk records of a file in order. The complete chunk region of the file is read
        and decrypted before the first chunk is produced.
        """
        meta = self.metadata(entry)
        count = meta.chunk_count
        table_size = 4 * count
        table = StructReader(read_and_decrypt(self.source, self.key, table_size, meta.data_offset))
        total = sum(table.u32() for _ in range(count))
        base = meta.data_offset + table_size
        region = StructReader(memoryview(read_and_decrypt(self.source, self.key, total, base)))
        for _ in range(count):
            yield HPIChunk(region, base)

    def extract(self, entry: HPIEntry, sink: BinaryIO) -> int:
        """
        Decode the file for the given entry and write it to the sink. Each chunk is decoded
        completely before it is written. Returns the number of bytes written.
        """
        written = 0
        for chunk in self.chunks(entry):
            data = decode_chunk(chunk)
            sink.write(data)
            written += len(data)
        return written

    def read(self, entry: HPIEntry) -> bytearray:
        output = io.BytesIO()
        self.extract(entry, output)
        return bytearray(output.getbuffer())

    def extract_all(self, root: str | os.PathLike, check: Callable[[str], bool] | None = None) -> list[str]:
        """
        Walk the directory tree and write every file below the given root directory. Parent
        directories are created as required; directories that contain no files are not created.
        When a `check` is given, only files whose archive path satisfies it are written. The first
        error aborts the extraction; files that were already written remain on disk. Returns the
        list of paths that were written.
        """
        written = []
        for entry in self.files():
            if check is not None and not check(entry.path):
                continue
            path = os.path.join(root, *entry.path.replace('\\', '/').split('/'))
            if directory := os.path.dirname(path):
                os.makedirs(directory, exist_ok=True)
            with open(path, 'wb') as sink:
                self.extract(entry, sink)
            written.append(path)
        return written
