#!/usr/bin/env python3
# -*- coding: utf-8 -*-
from __future__ import annotations

from hpiref.lib.decompression import lz_window_decompress
from hpiref.lib.types import Param
from hpiref.units import Arg, Unit


class hpilz(Unit):
    """
    Decompress the LZ77 variant that HPI archives use for chunks with compression method 1. The
    input is the raw compressed stream without the chunk header.
    """
    def __init__(
        self,
        size: Param[int | None, Arg.Number('-s', help=(
            'Fail if the decompressed data would exceed this many bytes.'))] = None,
    ):
        super().__init__(size=size)

    def process(self, data):
        output = lz_window_decompress(data, self.args.size)
        self.log_info(F'decompressed {len(data)} bytes into {len(output)} bytes')
        return output
