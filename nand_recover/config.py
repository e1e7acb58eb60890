# SPDX-License-Identifier: GPL-2.0-only
# Copyright (C) 2025 Gilderchuck

import configparser
import dataclasses
from dataclasses import dataclass

# zero is a meaningful setting for these
_NON_NEGATIVE = frozenset(("offset_sweep_limit", "max_uncorrectable"))


@dataclass(frozen=True)
class Tuning:
    """Heuristic knobs of the search and of the quality report.

    None of these are derived constants, they are empirical defaults that
    worked on real dumps and can be overridden from an INI file.
    """

    # layout search
    layout_sample_pages: int = 64
    max_layouts: int = 6
    shortlist_factor: int = 3
    min_chunk: int = 8
    max_chunk: int = 128
    offset_sweep_limit: int = 4096
    offset_step: int = 512
    sparse_warning_score: float = 0.05

    # parameter search
    param_sample_pages: int = 128
    quick_sample_pages: int = 256
    max_candidates: int = 2000
    max_uncorrectable: int = 500
    leaderboard_size: int = 5
    seed: int = 123

    # correction pipeline
    progress_every: int = 64
    quality_warn_ratio: float = 0.02
    quality_fail_ratio: float = 0.20

    def __post_init__(self):
        for f in dataclasses.fields(self):
            value = getattr(self, f.name)
            if f.name in _NON_NEGATIVE:
                if value < 0:
                    raise ValueError(f"tuning option '{f.name}' must "
                                     f"not be negative, got {value}")
            elif f.type is int and f.name != "seed" and value <= 0:
                raise ValueError(f"tuning option '{f.name}' must be "
                                 f"positive, got {value}")
        if self.min_chunk > self.max_chunk:
            raise ValueError("min_chunk must not exceed max_chunk")
        if not 0 <= self.quality_warn_ratio <= self.quality_fail_ratio <= 1:
            raise ValueError("quality ratios must satisfy "
                             "0 <= quality_warn_ratio <= quality_fail_ratio "
                             "<= 1")


DEFAULT_TUNING = Tuning()


def load_tuning(path, base=DEFAULT_TUNING, section="tuning"):
    """Read overrides from the ``[tuning]`` section of an INI file."""
    parser = configparser.ConfigParser()
    if not parser.read(path):
        raise FileNotFoundError(f"config file '{path}' does not exist")
    if not parser.has_section(section):
        return base

    types = {f.name: f.type for f in dataclasses.fields(Tuning)}
    overrides = {}
    for key, value in parser.items(section):
        if key not in types:
            raise ValueError(f"unknown tuning option '{key}' in {path}")
        conv = float if types[key] is float else int
        try:
            overrides[key] = conv(value)
        except ValueError:
            raise ValueError(f"invalid value '{value}' for tuning option "
                             f"'{key}' in {path}") from None
    try:
        return dataclasses.replace(base, **overrides)
    except ValueError as e:
        raise ValueError(f"{e} in {path}") from None
