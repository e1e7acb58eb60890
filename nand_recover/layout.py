# SPDX-License-Identifier: GPL-2.0-only
# Copyright (C) 2025 Gilderchuck

from dataclasses import dataclass

from .errors import InvalidLayout


@dataclass(frozen=True)
class Layout:
    """Page geometry of a raw dump.

    Every page is ``page_size`` data bytes followed by ``spare_size`` OOB
    bytes. The data is split into sectors of ``sector_size`` bytes, sector
    ``i`` owns the spare chunk ``i`` of ``chunk_size`` bytes, and its ECC
    lives at ``ecc_offset`` inside that chunk.
    """

    page_size: int
    spare_size: int
    sector_size: int
    chunk_size: int
    ecc_offset: int
    ecc_length: int

    @property
    def raw_page_size(self):
        return self.page_size + self.spare_size

    @property
    def step_count(self):
        return self.page_size // self.sector_size

    def validate(self):
        if self.page_size <= 0:
            raise InvalidLayout(f"invalid page size {self.page_size}")
        if self.sector_size <= 0:
            raise InvalidLayout(f"invalid sector size {self.sector_size}")
        if self.page_size % self.sector_size != 0:
            raise InvalidLayout(f"page size {self.page_size} is not a "
                                f"multiple of sector size {self.sector_size}")
        if self.chunk_size <= 0:
            raise InvalidLayout(f"invalid spare chunk size {self.chunk_size}")
        if self.ecc_offset < 0 or self.ecc_length <= 0:
            raise InvalidLayout(f"invalid ECC offset/length "
                                f"{self.ecc_offset}/{self.ecc_length}")
        if self.ecc_offset + self.ecc_length > self.chunk_size:
            raise InvalidLayout(f"ECC offset+length "
                                f"({self.ecc_offset}+{self.ecc_length}) "
                                f"exceeds spare chunk size {self.chunk_size}")
        if self.chunk_size * self.step_count > self.spare_size:
            raise InvalidLayout(f"{self.step_count} chunks of "
                                f"{self.chunk_size} bytes do not fit into "
                                f"spare size {self.spare_size}")
        return self

    def sector_start(self, step):
        return step * self.sector_size

    def chunk_start(self, step):
        return self.page_size + step * self.chunk_size

    def split(self, raw, step, extra_bytes=0):
        """Return (sector, extra spare bytes, stored ECC) of one step."""
        s = self.sector_start(step)
        c = self.chunk_start(step)
        e = c + self.ecc_offset
        return (raw[s:s + self.sector_size], raw[c:c + extra_bytes],
                raw[e:e + self.ecc_length])

    def __str__(self):
        return (f"page={self.page_size} spare={self.spare_size} "
                f"sector={self.sector_size} chunk={self.chunk_size} "
                f"ecc_ofs={self.ecc_offset} ecc_len={self.ecc_length}")
