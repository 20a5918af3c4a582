"""
Exceptions raised while reading HPI archives. Every error is fatal: the archive layer never retries
and the first exception aborts the whole extraction.
"""
from __future__ import annotations


class HPIError(Exception):
    """
    Base class of all errors raised while decoding an archive.
    """


class HPIDecodeError(HPIError):
    """
    A compressed stream could not be decoded.
    """


class HPIFormatError(HPIError, ValueError):
    """
    The archive violates the container format. The `offset` attribute holds the absolute archive
    offset of the offending structure, if known.
    """
    def __init__(self, message: str, offset: int | None = None):
        if offset is not None:
            message = F'{message} [offset 0x{offset:08X}]'
        super().__init__(message)
        self.offset = offset


class HPIBadMagic(HPIFormatError):
    def __init__(self, what: str, value: int, expected: int, offset: int | None = None):
        super().__init__(F'invalid {what} marker 0x{value:08X}, expected 0x{expected:08X}', offset)
        self.value = value


class HPITruncated(HPIFormatError):
    def __init__(self, size: int, read: int, offset: int):
        super().__init__(F'attempted to read {size} bytes from the archive, but got only {read}', offset)
        self.size = size
        self.read = read


class HPIUnterminatedName(HPIFormatError):
    def __init__(self, offset: int):
        super().__init__('entry name is not terminated', offset)


class HPIShortChunk(HPIFormatError):
    def __init__(self, size: int, read: int, offset: int):
        super().__init__(F'chunk declares {size} bytes of payload, but only {read} remain', offset)
        self.size = size
        self.read = read


class HPIDirectoryCycle(HPIFormatError):
    pass


class HPIUnknownCompression(HPIFormatError, HPIDecodeError):
    def __init__(self, method: int, offset: int | None = None):
        super().__init__(F'unknown compression method: {method:#x}', offset)
        self.method = method
