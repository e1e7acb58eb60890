# SPDX-License-Identifier: GPL-2.0-only
# Copyright (C) 2025 Gilderchuck

from collections import namedtuple

PolyPreset = namedtuple("PolyPreset", "name m poly notes")

PRESETS = (
    PolyPreset("GF(2^5) default", 5, 0x25,
               "common primitive polynomial for m=5"),
    PolyPreset("GF(2^6) default", 6, 0x43,
               "common primitive polynomial for m=6"),
    PolyPreset("GF(2^7) default", 7, 0x83,
               "common primitive polynomial for m=7"),
    PolyPreset("GF(2^8) default", 8, 0x11D,
               "very common (CRC/BCH literature)"),
    PolyPreset("GF(2^9) default", 9, 0x211,
               "common primitive polynomial for m=9"),
    PolyPreset("GF(2^10) default", 10, 0x409,
               "common primitive polynomial for m=10"),
    PolyPreset("GF(2^11) default", 11, 0x805,
               "common primitive polynomial for m=11"),
    PolyPreset("GF(2^12) default", 12, 0x1053,
               "common primitive polynomial for m=12"),
    PolyPreset("GF(2^13) default", 13, 0x201B,
               "Linux default for m=13"),
    PolyPreset("GF(2^14) Linux default", 14, 0x402B,
               "Linux default for m=14"),
    PolyPreset("GF(2^14) Broadcom-style", 14, 0x5803,
               "seen in some Broadcom NAND dumps"),
    PolyPreset("GF(2^14) MediaTek", 14, 0x4443,
               "MT8167-style controllers, usually with swapped bits"),
    PolyPreset("GF(2^15) Linux default", 15, 0x8003,
               "Linux default for m=15"),
)


def all_polys():
    return [p.poly for p in PRESETS]


def find_by_poly(poly):
    for p in PRESETS:
        if p.poly == poly:
            return p
    return None


def default_for_m(m):
    for p in PRESETS:
        if p.m == m:
            return p
    return find_by_poly(0x402B)


def parse_poly(text):
    text = str(text).strip().lower()
    try:
        poly = int(text, 16) if text.startswith("0x") else int(text, 10)
    except ValueError:
        raise ValueError(f"invalid polynomial '{text}'") from None
    if poly <= 1:
        raise ValueError(f"invalid polynomial '{text}'")
    if not poly & 1:
        raise ValueError(f"polynomial '{text}' has no constant term")
    return poly
