#!/usr/bin/env python3
# -*- coding: utf-8 -*-
from __future__ import annotations

from hpiref.lib.hpi import CHUNK_MAGIC, CompressionMethod, HPIChunk, decode_chunk
from hpiref.lib.structures import StructReader
from hpiref.units import Unit


class sqsh(Unit):
    """
    Decode a sequence of SQSH chunk records, as they are stored for each file inside an HPI
    archive after the table of chunk sizes. Every chunk is decrypted if required, decompressed, and
    the output of this unit is the concatenation of all decoded chunks.
    """
    def process(self, data):
        reader = StructReader(memoryview(data))
        output = bytearray()
        while not reader.eof:
            chunk = HPIChunk(reader)
            header = chunk.header
            try:
                method = CompressionMethod(header.method).name
            except ValueError:
                method = F'{header.method:#x}'
            self.log_debug(
                F'chunk at 0x{chunk.offset:08X}: method={method}, encrypted={bool(header.encrypted)}, '
                F'size={header.compressed_size}, decompressed={header.decompressed_size}')
            output.extend(decode_chunk(chunk))
        return output

    @classmethod
    def handles(cls, data) -> bool:
        return data[:4] == CHUNK_MAGIC.to_bytes(4, 'little')
