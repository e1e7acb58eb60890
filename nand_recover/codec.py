# SPDX-License-Identifier: GPL-2.0-only
# Copyright (C) 2025 Gilderchuck

import contextlib

import bchlib

from .errors import CodecInitError

# decode_and_correct() result for a sector beyond the correction capability
UNCORRECTABLE = -1

MIN_M = 5
MAX_M = 15


def degree_from_poly(poly):
    if poly <= 0:
        raise ValueError(f"invalid polynomial {poly:#x}")
    return poly.bit_length() - 1


def ecc_bytes(m, t):
    return (m * t + 7) // 8


def plausible(m, t):
    """Return True if a binary BCH code with these parameters can exist.

    The code length is 2^m - 1 bits and needs m*t parity bits, larger
    fields are refused to keep the native tables at a sane size.
    """
    if t <= 0:
        return False
    if m < MIN_M or m > MAX_M:
        return False
    return m * t <= (1 << m) - 1


# the kernel decoder refuses messages longer than n - ecc_bits
def message_fits(m, t, length):
    return 8 * length <= (1 << m) - 1 - m * t


def apply_errloc(message, ecc, errloc):
    """Flip the reported bit positions in place.

    Positions cover the message first and then the ECC bytes, both with
    bit 0 as the least significant bit of a byte.
    """
    msg_bits = len(message) * 8
    for pos in errloc:
        if pos < msg_bits:
            message[pos >> 3] ^= 1 << (pos & 7)
        else:
            pos -= msg_bits
            if (pos >> 3) < len(ecc):
                ecc[pos >> 3] ^= 1 << (pos & 7)


class BchCodec:
    def __init__(self, m, t, poly, swap_bits=False):
        if not plausible(m, t):
            raise CodecInitError(f"implausible BCH parameters m={m} t={t}")
        if not poly & 1:
            raise CodecInitError(f"polynomial {poly:#x} has no constant "
                                 "term")
        try:
            self._bch = bchlib.BCH(t, prim_poly=poly, m=m,
                                   swap_bits=swap_bits)
        except (RuntimeError, ValueError) as e:
            raise CodecInitError(f"bch init failed (m={m}, t={t}, "
                                 f"poly={poly:#x}): {e}") from e
        self.m = m
        self.t = t
        self.poly = poly
        self.swap_bits = swap_bits
        self.ecc_bytes = self._bch.ecc_bytes

    @property
    def closed(self):
        return self._bch is None

    def _handle(self):
        if self._bch is None:
            raise ValueError("codec is closed")
        return self._bch

    def fits(self, length):
        return message_fits(self.m, self.t, length)

    # message & ecc are mutable bytearrays, both are updated when the
    # sector is correctable
    def decode_and_correct(self, message, ecc):
        bch = self._handle()
        flips = bch.decode(message, ecc)
        if flips < 0:
            return UNCORRECTABLE
        if flips > 0:
            apply_errloc(message, ecc, bch.errloc[:flips])
        return flips

    def encode(self, message):
        return bytes(self._handle().encode(bytes(message)))

    def close(self):
        self._bch = None

    def __repr__(self):
        return (f"BchCodec(m={self.m}, t={self.t}, poly={self.poly:#x}, "
                f"swap_bits={self.swap_bits})")


@contextlib.contextmanager
def open_codec(m, t, poly, swap_bits=False):
    codec = BchCodec(m, t, poly, swap_bits)
    try:
        yield codec
    finally:
        codec.close()
