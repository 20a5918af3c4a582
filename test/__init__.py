from __future__ import annotations

import logging
import random
import string
import struct
import unittest
import zlib

import hpiref

from hpiref.lib.hpi import (
    CHUNK_MAGIC,
    CHUNK_SIZE,
    HEADER_SIZE,
    HPI_MAGIC,
    SAVED_GAME,
    chunk_encrypt,
    derive_key,
    hpi_keystream,
)


__all__ = ['hpiref', 'TestBase', 'NameUnknownException', 'make_archive', 'make_chunk', 'lz_compress']


class NameUnknownException(Exception):
    def __init__(self, name):
        super().__init__('could not resolve: {}'.format(name))


def lz_compress(data: bytes) -> bytes:
    """
    A greedy compressor for the LZ77 variant of HPI archives. It produces back-references of up to
    17 bytes into the last 4000 bytes of output.
    """
    data = bytes(data)
    tokens: list[tuple[int, int]] = []
    n = 0
    while n < len(data):
        lo = max(0, n - 4000)
        if n + 2 > len(data) or data.rfind(data[n:n + 2], lo, n + 1) < 0:
            tokens.append((0, data[n]))
            n += 1
            continue
        for length in range(min(17, len(data) - n), 1, -1):
            m = data.rfind(data[n:n + length], lo, n + length - 1)
            if m >= 0 and (m + 1) & 0xFFF:
                tokens.append((1, ((m + 1) & 0xFFF) << 4 | (length - 2)))
                n += length
                break
        else:
            tokens.append((0, data[n]))
            n += 1
    tokens.append((1, 0))
    output = bytearray()
    for k in range(0, len(tokens), 8):
        group = tokens[k:k + 8]
        output.append(sum(bit << j for j, (bit, _) in enumerate(group)))
        for bit, value in group:
            if bit:
                output.extend(struct.pack('<H', value))
            else:
                output.append(value)
    return bytes(output)


def make_chunk(data: bytes, method: int = 0, encrypt: bool = False) -> bytes:
    """
    Create a SQSH chunk record for the given data. Unknown compression methods store the data
    without compression.
    """
    if method == 1:
        payload = lz_compress(data)
    elif method == 2:
        payload = zlib.compress(data)
    else:
        payload = bytes(data)
    if encrypt:
        payload = bytes(chunk_encrypt(payload))
    checksum = sum(payload) & 0xFFFFFFFF
    header = struct.pack('<IBBBIII', CHUNK_MAGIC, 2, method, int(encrypt), len(payload), len(data), checksum)
    return header + payload


def make_archive(
    tree: dict,
    seed: int = 0,
    method: int = 0,
    encrypt: bool = False,
    saved: bool = False,
) -> bytes:
    """
    Build an HPI archive from a nested dictionary. Dictionary values become subdirectories; byte
    strings become files that are split into chunks of 64 KiB and compressed with the given method.
    A file can also be given as a list of pairs `(data, method)`, one for each chunk.
    """
    directory = bytearray(HEADER_SIZE)
    files: list[tuple[int, bytes | list]] = []

    def node(tree: dict) -> int:
        offset = len(directory)
        items = list(tree.items())
        directory.extend(struct.pack('<II', len(items), offset + 8))
        table = len(directory)
        directory.extend(bytes(9 * len(items)))
        for k, (name, value) in enumerate(items):
            name_offset = len(directory)
            directory.extend(name.encode('latin1') + B'\0')
            if isinstance(value, dict):
                data_offset = node(value)
                flag = 1
            else:
                data_offset = len(directory)
                directory.extend(bytes(9))
                files.append((data_offset, value))
                flag = 0
            struct.pack_into('<IIB', directory, table + 9 * k, name_offset, data_offset, flag)
        return offset

    node(tree)
    directory_size = len(directory)
    body = bytearray()

    for meta_offset, value in files:
        if isinstance(value, list):
            parts = value
        else:
            parts = [(value[k:k + CHUNK_SIZE], method) for k in range(0, len(value), CHUNK_SIZE)]
        chunks = [make_chunk(data, m, encrypt) for data, m in parts]
        size = sum(len(data) for data, _ in parts)
        data_offset = directory_size + len(body)
        body.extend(struct.pack(F'<{len(chunks)}I', *(len(c) for c in chunks)))
        for chunk in chunks:
            body.extend(chunk)
        struct.pack_into('<IIB', directory, meta_offset, data_offset, size, method)

    archive = directory + body
    save = SAVED_GAME if saved else 0
    struct.pack_into('<5I', archive, 0, HPI_MAGIC, save, directory_size, seed, HEADER_SIZE)
    archive[HEADER_SIZE:] = hpi_keystream(archive[HEADER_SIZE:], derive_key(seed), HEADER_SIZE)
    return bytes(archive)


class TestBase(unittest.TestCase):

    def ldu(self, name, *args, **kwargs):
        unit = hpiref.load(name)
        if unit is None:
            raise NameUnknownException(name)
        return unit(*args, **kwargs).log_detach()

    def generate_random_buffer(self, size):
        return bytes(random.randrange(0, 0x100) for _ in range(size))

    def generate_random_text(self, size):
        return ''.join(string.printable[
            random.randrange(0, len(string.printable))] for _ in range(size)).encode('UTF8')

    def setUp(self):
        random.seed(0xBAADF00D)  # guarantee deterministic 'random' buffers
        logging.disable(logging.CRITICAL)

    def assertContains(self, container, member, msg=None):
        self.assertIn(member, container, msg)
