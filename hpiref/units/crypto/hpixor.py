#!/usr/bin/env python3
# -*- coding: utf-8 -*-
from __future__ import annotations

from hpiref.lib.hpi import derive_key, hpi_keystream
from hpiref.lib.types import Param
from hpiref.units import Arg, Unit


class hpixor(Unit):
    """
    Apply the keystream cipher of HPI archives. Every byte of the input is combined with the key and
    with the low byte of its absolute position in the archive. The operation is its own inverse.
    """
    def __init__(
        self,
        key: Param[int, Arg.Number(metavar='key', help=(
            'The single byte key of the archive. Use --seed if this is the raw key field of the '
            'archive header.'))],
        offset: Param[int, Arg.Number('-o', help=(
            'The absolute archive offset of the first input byte. The default is %(default)s.'))] = 0,
        seed: Param[bool, Arg.Switch('-s', help=(
            'Interpret the key as the key field of the archive header and derive the actual key '
            'from it.'))] = False,
    ):
        super().__init__(key=key, offset=offset, seed=seed)

    @property
    def _key(self) -> int:
        key = self.args.key
        if self.args.seed:
            key = derive_key(key)
            self.log_debug(F'derived key 0x{key:02X} from seed 0x{self.args.key:X}')
        elif not 0 <= key <= 0xFF:
            raise ValueError(F'the key 0x{key:X} does not fit in a single byte')
        return key

    def process(self, data):
        return hpi_keystream(data, self._key, self.args.offset)

    reverse = process
