import dataclasses
from pathlib import Path

import pytest

from conftest import LAYOUT, POLY, T, build_dump, flip_one_bit_per_sector
from nand_recover.codec import plausible
from nand_recover.config import Tuning
from nand_recover.detect import detect
from nand_recover.errors import NoPlausibleLayout, NoWorkingParameters
from nand_recover.params import CodecParams
from nand_recover.polys import all_polys, default_for_m, find_by_poly, parse_poly
from nand_recover.ranking import CandidateScore, Ranked, leaderboard, rank
from nand_recover.transforms import Transform

FAST = Tuning(max_uncorrectable=16, max_layouts=4)


@pytest.fixture
def noisy_file(tmp_path: Path) -> Path:
    path = tmp_path / "noisy.bin"
    path.write_bytes(flip_one_bit_per_sector(build_dump(pages=60)))
    return path


def test_detect_recovers_layout_and_parameters(noisy_file: Path) -> None:
    logs = []
    result = detect(noisy_file, polys=[POLY, 0x402B], t_values=[T],
                    tuning=FAST, log=logs.append)

    best = result.best
    assert best.layout == LAYOUT
    assert best.offset == 0
    assert best.params == CodecParams(POLY, T, Transform.NONE, 0)
    assert best.score.uncorrectable == 0
    assert best.score.bitflips == 240
    assert result.leaderboard[0] == best
    assert result.layouts[0].score >= result.layouts[-1].score
    assert not any(line.startswith("WARNING:") for line in logs)


def test_detect_is_deterministic(noisy_file: Path) -> None:
    first = detect(noisy_file, polys=[POLY], t_values=[T, 8], tuning=FAST)
    second = detect(noisy_file, polys=[POLY], t_values=[T, 8], tuning=FAST)
    assert first.best == second.best
    assert first.leaderboard == second.leaderboard


def test_detect_rejects_tiny_files(tmp_path: Path) -> None:
    path = tmp_path / "tiny.bin"
    path.write_bytes(b"\x00" * 300)
    with pytest.raises(NoPlausibleLayout):
        detect(path, tuning=FAST)


def test_detect_without_usable_parameters(tmp_path: Path) -> None:
    path = tmp_path / "blank.bin"
    path.write_bytes(build_dump(pages=20, erased=True))
    logs = []
    with pytest.raises(NoWorkingParameters):
        detect(path, polys=[POLY], t_values=[T], tuning=FAST,
               log=logs.append)
    assert any(line.startswith("WARNING: spare area") for line in logs)


def _entry(checked, ok, uncorrectable, bitflips, layout_score=0.0):
    score = CandidateScore(checked, ok, uncorrectable, bitflips)
    return Ranked(LAYOUT, 0, CodecParams(POLY, T), score, layout_score)


def test_ranking_order() -> None:
    a = _entry(100, 90, 10, 5)
    b = _entry(100, 100, 0, 0)
    c = _entry(100, 100, 0, 0, layout_score=0.5)
    d = _entry(100, 100, 0, 30, layout_score=0.5)
    e = _entry(0, 0, 0, 0)
    assert rank([a, b, c, d, e]) == [d, c, b, a, e]
    assert leaderboard([a, b, c, d, e], 2) == [d, c]


def test_ranking_keeps_enumeration_order_on_ties() -> None:
    first = _entry(10, 10, 0, 1)
    second = dataclasses.replace(first, offset=512)
    assert rank([first, second])[0].offset == 0
    assert rank([second, first])[0].offset == 512


def test_polynomial_catalogue() -> None:
    polys = all_polys()
    assert len(polys) == len(set(polys))
    assert 0x5803 in polys and 0x4443 in polys
    assert find_by_poly(0x402B).m == 14
    assert find_by_poly(0x1234) is None
    assert default_for_m(13).poly == 0x201B
    assert default_for_m(3).poly == 0x402B
    assert parse_poly("0x201b") == 0x201B
    assert parse_poly("8219") == 0x201B
    with pytest.raises(ValueError):
        parse_poly("zz")
    with pytest.raises(ValueError):
        parse_poly("0x2000")


def test_params_derive_field_degree() -> None:
    params = CodecParams(0x5803, 4)
    assert params.m == 14
    assert params.ecc_length == 7
    assert params.plausible == plausible(14, 4)
    assert "poly=0x5803" in str(params)
