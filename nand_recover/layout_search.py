# SPDX-License-Identifier: GPL-2.0-only
# Copyright (C) 2025 Gilderchuck

import math
import os
from dataclasses import dataclass, replace

from .config import DEFAULT_TUNING
from .errors import check_cancel
from .layout import Layout
from .sampler import sample_pages
from .transforms import count_erased

# (page size, spare sizes seen with it)
COMMON_PAGE_SPARE = (
    (512, (16,)),
    (2048, (64, 128)),
    (4096, (128, 224, 256)),
    (8192, (256, 448, 640)),
    (16384, (512, 1024)),
)

COMMON_SECTOR_SIZES = (512, 1024)


@dataclass(frozen=True)
class LayoutCandidate:
    page_size: int
    spare_size: int
    sector_size: int
    chunk_size: int
    offset: int = 0
    score: float = 0.0

    @property
    def raw_page_size(self):
        return self.page_size + self.spare_size

    @property
    def step_count(self):
        return self.page_size // self.sector_size

    def with_ecc(self, ecc_offset, ecc_length):
        return Layout(self.page_size, self.spare_size, self.sector_size,
                      self.chunk_size, ecc_offset, ecc_length)

    def __str__(self):
        return (f"page={self.page_size} spare={self.spare_size} "
                f"sector={self.sector_size} chunk={self.chunk_size} "
                f"raw={self.raw_page_size} offset={self.offset} "
                f"score={self.score:.3f}")


def geometries(tuning=DEFAULT_TUNING):
    """Yield (page, spare, sector, chunk) combinations worth trying."""
    for page, spares in COMMON_PAGE_SPARE:
        for spare in spares:
            for sector in COMMON_SECTOR_SIZES:
                if page % sector != 0:
                    continue
                steps = page // sector
                # one spare chunk per sector
                if spare % steps != 0:
                    continue
                chunk = spare // steps
                if chunk < tuning.min_chunk or chunk > tuning.max_chunk:
                    continue
                yield page, spare, sector, chunk


def candidate_offsets(file_size, raw_page_size, tuning=DEFAULT_TUNING):
    offsets = [0]

    # a header or trailer leaves a remainder
    rem = file_size % raw_page_size
    if rem != 0:
        offsets.append(rem)

    limit = min(raw_page_size, tuning.offset_sweep_limit)
    offsets.extend(range(tuning.offset_step, limit, tuning.offset_step))

    return list(dict.fromkeys(offsets))


def score_layout(path, file_size, cand, sample_count, seed, cancel=None):
    """Return how much sparser the spare area is than the data area.

    Spare chunks are mostly erased bytes around the ECC, so the right
    geometry shows a clearly positive difference of the erased ratios.
    """
    if cand.offset < 0 or file_size - cand.offset < cand.raw_page_size:
        return -math.inf

    pages = sample_pages(path, file_size, cand.raw_page_size, cand.offset,
                         sample_count, seed, cancel)

    if not pages:
        return -math.inf

    ff_data = ff_spare = 0
    for raw in pages:
        ff_data += count_erased(raw[:cand.page_size])
        ff_spare += count_erased(raw[cand.page_size:])

    total_data = len(pages) * cand.page_size
    total_spare = len(pages) * cand.spare_size
    return ff_spare / total_spare - ff_data / total_data


def search_layouts(path, tuning=DEFAULT_TUNING, log=None, cancel=None):
    """Score every catalogue geometry at every candidate offset.

    Returns the candidates with a finite score, best first.
    """
    file_size = os.path.getsize(path)
    scored = []

    for page, spare, sector, chunk in geometries(tuning):
        raw_page = page + spare
        for offset in candidate_offsets(file_size, raw_page, tuning):
            check_cancel(cancel)
            cand = LayoutCandidate(page, spare, sector, chunk, offset)
            score = score_layout(path, file_size, cand,
                                 tuning.layout_sample_pages, tuning.seed,
                                 cancel)
            if score == -math.inf:
                continue
            scored.append(replace(cand, score=score))
            if log:
                log(f"DEBUG: layout {scored[-1]}")

    scored.sort(key=lambda c: c.score, reverse=True)
    return scored
