# SPDX-License-Identifier: GPL-2.0-only
# Copyright (C) 2025 Gilderchuck

import enum

ERASED = 0xFF


class Transform(enum.Enum):
    NONE = "none"
    INV = "inv"
    BITREV = "bitrev"
    INV_BITREV = "inv+bitrev"

    def __str__(self):
        return self.value


def bit_reverse(x):
    x = ((x >> 4) | (x << 4)) & 0xFF
    x = ((x & 0xCC) >> 2) | ((x & 0x33) << 2)
    x = ((x & 0xAA) >> 1) | ((x & 0x55) << 1)
    return x


_TABLES = {
    Transform.INV: bytes(b ^ 0xFF for b in range(256)),
    Transform.BITREV: bytes(bit_reverse(b) for b in range(256)),
    # inversion and reversal commute, so the order does not matter here
    Transform.INV_BITREV: bytes(bit_reverse(b ^ 0xFF) for b in range(256)),
}


def parse_transform(text):
    try:
        return Transform(text.strip().lower())
    except ValueError:
        raise ValueError(f"unknown transform '{text}', expected one of "
                         f"{', '.join(t.value for t in Transform)}") from None


# buf must be a mutable bytearray, every variant is its own inverse
def apply_transform(buf, kind):
    if kind is Transform.NONE:
        return buf
    buf[:] = buf.translate(_TABLES[kind])
    return buf


def is_erased(buf):
    return buf.count(ERASED) == len(buf)


def count_erased(buf):
    return buf.count(ERASED)
