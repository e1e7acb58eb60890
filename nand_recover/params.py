# SPDX-License-Identifier: GPL-2.0-only
# Copyright (C) 2025 Gilderchuck

from dataclasses import dataclass

from .codec import degree_from_poly, ecc_bytes, message_fits, plausible
from .errors import CodecInitError, InvalidLayout
from .transforms import Transform


@dataclass(frozen=True)
class CodecParams:
    poly: int
    t: int
    transform: Transform = Transform.NONE
    # spare bytes at the start of the chunk protected together with the sector
    extra_bytes: int = 0
    swap_bits: bool = False

    @property
    def m(self):
        return degree_from_poly(self.poly)

    @property
    def ecc_length(self):
        return ecc_bytes(self.m, self.t)

    @property
    def plausible(self):
        return plausible(self.m, self.t)

    def check_layout(self, layout):
        """Refuse pairing these parameters with an incompatible layout."""
        if self.extra_bytes < 0 or self.extra_bytes > layout.ecc_offset:
            raise InvalidLayout(f"extra message bytes must be between 0 and "
                                f"the ECC offset ({layout.ecc_offset})")
        if not self.plausible:
            raise CodecInitError(f"implausible BCH parameters m={self.m} "
                                 f"t={self.t}")
        if self.ecc_length != layout.ecc_length:
            raise CodecInitError(f"BCH m={self.m} t={self.t} needs "
                                 f"{self.ecc_length} ECC bytes, layout has "
                                 f"{layout.ecc_length}")
        if not message_fits(self.m, self.t,
                            layout.sector_size + self.extra_bytes):
            raise CodecInitError(f"{layout.sector_size + self.extra_bytes} "
                                 f"byte message does not fit a BCH code "
                                 f"with m={self.m} t={self.t}")

    def __str__(self):
        return (f"poly={self.poly:#x} (m={self.m}) t={self.t} "
                f"swap_bits={self.swap_bits} tf={self.transform} "
                f"extra={self.extra_bytes}")
