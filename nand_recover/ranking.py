# SPDX-License-Identifier: GPL-2.0-only
# Copyright (C) 2025 Gilderchuck

from dataclasses import dataclass


@dataclass(frozen=True)
class CandidateScore:
    checked: int = 0
    ok: int = 0
    uncorrectable: int = 0
    bitflips: int = 0

    @property
    def uncorrectable_ratio(self):
        if self.checked <= 0:
            return 1.0
        return self.uncorrectable / self.checked

    def __str__(self):
        return (f"checked={self.checked} ok={self.ok} "
                f"uncorrectable={self.uncorrectable} "
                f"({self.uncorrectable_ratio:.1%}) bitflips={self.bitflips}")


@dataclass(frozen=True)
class Ranked:
    layout: object
    offset: int
    params: object
    score: CandidateScore
    layout_score: float = 0.0

    def __str__(self):
        return (f"{self.layout} offset={self.offset} "
                f"layout_score={self.layout_score:.3f} | {self.params} "
                f"=> {self.score}")


def rank_key(entry):
    # fewer failures first, then the sparser layout, then more sectors
    # decoded, then more flips (nothing decodes under wrong parameters)
    return (entry.score.uncorrectable_ratio, -entry.layout_score,
            -entry.score.ok, -entry.score.bitflips)


def rank(entries):
    # sorted() is stable, equal keys keep their enumeration order
    return sorted(entries, key=rank_key)


def leaderboard(entries, size=5):
    return rank(entries)[:size]


@dataclass(frozen=True)
class SearchResult:
    best: Ranked
    leaderboard: tuple
    # scored layout shortlist, empty for a fixed layout
    layouts: tuple = ()
