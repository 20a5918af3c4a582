"""
The sliding window decompression used for HPI chunks with compression method 1. The format is an
LZ77 variant over a 4096 byte window: A tag byte announces the type of the next eight tokens, least
significant bit first. A clear bit is followed by a literal byte, a set bit by a 16-bit word that
encodes a window position in its upper 12 bits and a repeat count minus two in the lower 4 bits. A
reference to window position zero terminates the stream.
"""
from __future__ import annotations

from hpiref.lib.exceptions import HPIDecodeError
from hpiref.lib.structures import EOF, StructReader
from hpiref.lib.types import buf

WINDOW_SIZE = 0x1000
WINDOW_START = 1


class RingBuffer:
    """
    A fixed size circular buffer. Reads and writes wrap around at the end of the buffer, the size
    must be a power of two.
    """
    __slots__ = '_data', '_mask', '_cursor'

    def __init__(self, size: int = WINDOW_SIZE, cursor: int = WINDOW_START):
        if size & (size - 1):
            raise ValueError(F'ring buffer size {size} is not a power of two')
        self._data = bytearray(size)
        self._mask = size - 1
        self._cursor = cursor & self._mask

    def __len__(self):
        return len(self._data)

    @property
    def cursor(self) -> int:
        return self._cursor

    def read_at(self, position: int) -> int:
        return self._data[position & self._mask]

    def write_next(self, byte: int) -> None:
        self._data[self._cursor] = byte
        self._cursor = (self._cursor + 1) & self._mask


def lz_window_decompress(data: buf, limit: int | None = None) -> bytearray:
    """
    Decompress an LZ window stream. When `limit` is given, the output may not grow beyond that many
    bytes. Raises `hpiref.lib.exceptions.HPIDecodeError` if the input ends before the terminating
    back-reference or if the output exceeds the limit.
    """
    reader = StructReader(memoryview(data))
    window = RingBuffer()
    output = bytearray()

    def overflow():
        return limit is not None and len(output) > limit

    try:
        while True:
            tag = reader.u8()
            for _ in range(8):
                if not tag & 1:
                    byte = reader.u8()
                    output.append(byte)
                    window.write_next(byte)
                else:
                    word = reader.u16()
                    position = word >> 4
                    if not position:
                        return output
                    count = (word & 0xF) + 2
                    for position in range(position, position + count):
                        byte = window.read_at(position)
                        output.append(byte)
                        window.write_next(byte)
                if overflow():
                    raise HPIDecodeError(
                        F'decompressed data exceeds the declared size of {limit} bytes at input offset {reader.tell()}')
                tag >>= 1
    except EOF as E:
        raise HPIDecodeError(
            F'compressed stream ended at offset {reader.tell()} before the end marker; '
            F'{len(output)} bytes were decompressed') from E
