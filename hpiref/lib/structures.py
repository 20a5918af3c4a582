"""
Interfaces and classes to read structured data.
"""
from __future__ import annotations

import abc
import codecs
import functools
import inspect
import io
import struct
import sys

from typing import TYPE_CHECKING, Generic, TypeVar, Union, get_origin

if TYPE_CHECKING:
    from typing import Self

    from hpiref.lib.types import buf

    T = TypeVar('T', bound=Union[bytearray, bytes, memoryview])
else:
    T = TypeVar('T')


UnpackType = Union[int, bool, float, bytes]


class EOF(EOFError):
    """
    While reading from a `hpiref.lib.structures.StructReader`, less bytes were available than
    requested. The exception contains the data from the incomplete read.
    """
    def __init__(self, size: int, rest: buf = B''):
        super().__init__(F'Unexpected end of buffer; attempted to read {size} bytes, but got only {len(rest)}.')
        self.rest = rest
        self.size = size

    def __bytes__(self):
        return bytes(self.rest)


class StreamDetour:
    """
    A stream detour is used as a context manager to temporarily read from a different location
    in the stream and then return to the original offset when the context ends.
    """
    def __init__(self, stream: StructReader, offset: int | None = None, whence: int = io.SEEK_SET):
        self.stream = stream
        self.offset = offset
        self.whence = whence

    def __enter__(self):
        self.cursor = self.stream.tell()
        if self.offset is not None:
            self.stream.seek(self.offset, self.whence)
        return self

    def __exit__(self, *args):
        self.stream.seek(self.cursor, io.SEEK_SET)


class StructReader(Generic[T]):
    """
    A seekable, read-only view of a byte buffer which provides methods to read structured data.
    All integers are read in little endian byte order. The reader also implements the subset of
    the binary stream interface that is required to use it in place of an opened file.
    """
    __slots__ = '_data', '_cursor'

    def __init__(self, data: T | StructReader[T]):
        if isinstance(data, StructReader):
            data = data._data
        self._data: T = data
        self._cursor = 0

    def __len__(self):
        return len(self._data)

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return True

    @property
    def eof(self) -> bool:
        return self._cursor >= len(self._data)

    @property
    def remaining_bytes(self) -> int:
        return len(self._data) - self._cursor

    def detour(self, offset: int | None = None, whence: int = io.SEEK_SET):
        return StreamDetour(self, offset, whence)

    def getbuffer(self) -> memoryview:
        return memoryview(self._data)

    def tell(self) -> int:
        return self._cursor

    def seek(self, offset: int, whence=io.SEEK_SET) -> int:
        if whence == io.SEEK_SET:
            if offset < 0:
                raise ValueError('no negative offsets allowed for SEEK_SET.')
        elif whence == io.SEEK_CUR:
            offset += self._cursor
        elif whence == io.SEEK_END:
            offset += len(self._data)
        else:
            raise ValueError(F'invalid whence value {whence}')
        self._cursor = max(offset, 0)
        return self._cursor

    def seekset(self, offset: int) -> int:
        return self.seek(offset, io.SEEK_SET)

    def seekrel(self, offset: int) -> int:
        return self.seek(offset, io.SEEK_CUR)

    def skip(self, n: int):
        self._cursor += n

    def read(self, size: int | None = None, peek: bool = False) -> T:
        beginning = self._cursor
        if size is None or size < 0:
            end = len(self._data)
        else:
            end = min(beginning + size, len(self._data))
        result = self._data[beginning:end]
        if not peek:
            self._cursor = max(end, beginning)
        return result

    def peek(self, size: int | None = None) -> memoryview:
        return memoryview(self.read(size, peek=True))

    def read_exactly(self, size: int | None = None, peek: bool = False) -> T:
        """
        Read bytes from the underlying buffer. Raises an exception of type
        `hpiref.lib.structures.EOF` when fewer data is available than requested via the `size`
        parameter. The remaining data can be extracted from the exception.
        """
        data = self.read(size, peek)
        if size and len(data) < size:
            raise EOF(size, data)
        return data

    def read_integer(self, size: int, peek: bool = False, signed: bool = False) -> int:
        """
        Read an integer of the given size (in bits) from the stream.
        """
        nbytes, rest = divmod(size, 8)
        if rest > 0:
            raise ValueError(
                F'A {self.__class__.__name__} cannot read {size} bit{"s" * (size > 1)}, only multiples of 8 are possible.')
        data = self.read(nbytes, peek)
        if len(data) < nbytes:
            raise EOF(nbytes, data)
        return int.from_bytes(data, 'little', signed=signed)

    def read_struct(self, spec: str, peek=False) -> list[UnpackType]:
        """
        Read structured data from the stream in any format supported by the `struct` module. The
        data is read in little endian byte order unless the format specifies a different one.
        """
        if not spec:
            raise ValueError('no format specified')
        if spec[:1] not in '<!=@>':
            spec = F'<{spec}'
        data = self.read_exactly(struct.calcsize(spec), peek)
        return list(struct.unpack(spec, data))

    def read_byte(self, peek: bool = False) -> int:
        try:
            b = self._data[self._cursor]
        except IndexError:
            raise EOF(1)
        if not peek:
            self._cursor += 1
        return b

    u8 = read_byte

    def u16(self, peek: bool = False) -> int:
        return self.read_integer(16, peek)

    def u32(self, peek: bool = False) -> int:
        return self.read_integer(32, peek)

    def read_terminated_array(self, terminator: bytes) -> T:
        data = self._data
        pos = self._cursor
        end = bytes(data[pos:]).find(terminator)
        if end < 0:
            raise EOF(len(data) - pos + len(terminator), data[pos:])
        result = self.read_exactly(end)
        self.skip(len(terminator))
        return result

    def read_c_string(self, encoding: str | None = None) -> str | T:
        data = self.read_terminated_array(B'\0')
        if encoding is not None:
            data = codecs.decode(data, encoding)
        return data


class StructMeta(abc.ABCMeta):
    """
    A metaclass to facilitate the behavior outlined for `hpiref.lib.structures.Struct`.
    """
    def __new__(mcls, name, bases, namespace: dict, interface: type[StructReader] | None = None):
        if interface is None:
            if init := namespace.get('__init__'):
                args = iter(inspect.signature(init).parameters.values())
                next(args)
                interface = next(args).annotation
                if isinstance(interface, str):
                    try:
                        module = sys.modules[namespace['__module__']]
                        interface = eval(interface, module.__dict__)
                    except Exception:
                        interface = None
                if not isinstance(interface, type):
                    interface = get_origin(interface)
                if not isinstance(interface, type) or not issubclass(interface, StructReader):
                    interface = StructReader
            else:
                interface = StructReader

        def parse(cls, reader: T | StructReader[T], *args, **kwargs):
            if not isinstance(reader, interface):
                reader = interface(reader)
            return cls(reader, *args, **kwargs)

        namespace.update(Parse=classmethod(parse))
        return super().__new__(mcls, name, bases, namespace)

    def __init__(cls, name, bases, nmspc, **_):
        super().__init__(name, bases, nmspc)
        original__init__ = cls.__init__

        @functools.wraps(original__init__)
        def wrapped__init__(self: Struct, reader: StructReader, *args, **kwargs):
            start = reader.tell()
            original__init__(self, reader, *args, **kwargs)
            self._size = reader.tell() - start

        setattr(cls, '__init__', wrapped__init__)


class Struct(Generic[T], metaclass=StructMeta):
    """
    A class to parse structured data. A `hpiref.lib.structures.Struct` class can be instantiated
    as follows:

        foo = Struct.Parse(data, bar=29)

    The initialization routine of the structure will be called with a single argument `reader`. If
    the object `data` is already a `hpiref.lib.structures.StructReader`, then it will be passed
    as `reader`. Otherwise, the argument will be wrapped in a `hpiref.lib.structures.StructReader`.
    Additional arguments to the struct are passed through. After parsing, the `len` of the structure
    is the number of bytes that were consumed.
    """
    _size: int

    @classmethod
    def Parse(cls, reader: T | StructReader[T], *args, **kwargs) -> Self:
        ...

    def __len__(self):
        return self._size

    def __init__(self, reader: StructReader[T], *args, **kwargs):
        pass
