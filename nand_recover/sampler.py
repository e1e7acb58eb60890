# SPDX-License-Identifier: GPL-2.0-only
# Copyright (C) 2025 Gilderchuck

import random

from .errors import check_cancel


def pick_pages(total_pages, sample_count, seed):
    """Pick a reproducible, ascending subset of page indices."""
    if total_pages <= 0 or sample_count <= 0:
        return []
    if total_pages <= sample_count:
        return list(range(total_pages))
    rng = random.Random(seed)
    return sorted(rng.sample(range(total_pages), sample_count))


def load_pages(path, raw_page_size, offset, indices, cancel=None):
    pages = []
    with open(path, "rb") as fi:
        for index in indices:
            check_cancel(cancel)
            fi.seek(offset + index * raw_page_size)
            raw = fi.read(raw_page_size)
            # truncated tail page
            if len(raw) != raw_page_size:
                continue
            pages.append(raw)
    return pages


def sample_pages(path, file_size, raw_page_size, offset, sample_count, seed,
                 cancel=None):
    total = (file_size - offset) // raw_page_size if file_size > offset else 0
    indices = pick_pages(total, sample_count, seed)
    return load_pages(path, raw_page_size, offset, indices, cancel)
