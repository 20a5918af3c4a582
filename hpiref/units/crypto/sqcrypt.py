#!/usr/bin/env python3
# -*- coding: utf-8 -*-
from __future__ import annotations

from hpiref.lib.hpi import chunk_decrypt, chunk_encrypt
from hpiref.units import Unit


class sqcrypt(Unit):
    """
    Decrypt the payload of an encrypted SQSH chunk. Each byte is combined with its own position
    within the payload. In reverse mode, the unit encrypts.
    """
    def process(self, data):
        return chunk_decrypt(data)

    def reverse(self, data):
        return chunk_encrypt(data)
