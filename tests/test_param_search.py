import random
from pathlib import Path

import pytest

from conftest import LAYOUT, POLY, T, build_dump, flip_one_bit_per_sector
from nand_recover.codec import open_codec
from nand_recover.config import Tuning
from nand_recover.errors import Cancelled, MisalignedFile, NoWorkingParameters
from nand_recover.layout_search import LayoutCandidate
from nand_recover.param_search import (ecc_offset_candidates, evaluate,
                                       extra_byte_candidates, guess_t_values,
                                       quick_test, search_params)
from nand_recover.params import CodecParams
from nand_recover.sampler import load_pages
from nand_recover.transforms import Transform

FAST = Tuning(max_uncorrectable=16)


def _pages(dump: bytes) -> list:
    raw = LAYOUT.raw_page_size
    return [bytes(dump[i:i + raw]) for i in range(0, len(dump), raw)]


def test_ecc_offset_candidates() -> None:
    assert ecc_offset_candidates(16, 7) == [9, 8, 0, 1, 2, 4]
    assert ecc_offset_candidates(7, 7) == [0]
    assert ecc_offset_candidates(32, 13)[:2] == [19, 18]
    for ofs in ecc_offset_candidates(28, 13):
        assert ofs + 13 <= 28


def test_extra_byte_candidates() -> None:
    assert extra_byte_candidates(9) == [0, 9, 8, 7]
    assert extra_byte_candidates(1) == [0, 1]
    assert extra_byte_candidates(0) == [0]


def test_guess_t_values() -> None:
    assert guess_t_values(7, 13) == [3, 4, 5, 2, 8, 16]
    assert all(0 < t <= 64 for t in guess_t_values(1, 15))


def test_evaluate_counts_and_skips_erased() -> None:
    dump = flip_one_bit_per_sector(build_dump(pages=10))
    pages = _pages(dump) + [b"\xff" * LAYOUT.raw_page_size]
    params = CodecParams(POLY, T)
    with open_codec(13, T, POLY) as codec:
        score = evaluate(codec, LAYOUT, params, pages)
    assert (score.checked, score.ok, score.uncorrectable) == (40, 40, 0)
    assert score.bitflips == 40
    assert score.uncorrectable_ratio == 0.0

    with open_codec(13, T, POLY) as codec:
        wrong = evaluate(codec, LAYOUT, CodecParams(POLY, T, Transform.INV),
                         pages)
    assert wrong.checked == 40
    assert wrong.uncorrectable_ratio > 0.9


def test_evaluate_stops_early_on_hopeless_candidates() -> None:
    pages = _pages(build_dump(pages=20))
    params = CodecParams(POLY, T, Transform.BITREV)
    with open_codec(13, T, POLY) as codec:
        score = evaluate(codec, LAYOUT, params, pages, max_uncorrectable=5)
    assert score.checked == 8
    assert score.uncorrectable_ratio == 1.0


def test_evaluate_leaves_samples_untouched() -> None:
    dump = flip_one_bit_per_sector(build_dump(pages=2))
    pages = _pages(dump)
    with open_codec(13, T, POLY) as codec:
        evaluate(codec, LAYOUT, CodecParams(POLY, T), pages)
    assert b"".join(pages) == bytes(dump)


def test_search_params_recovers_ecc_position(dump_file: Path) -> None:
    cand = LayoutCandidate(2048, 64, 512, 16, 0, 0.5)
    pages = load_pages(dump_file, cand.raw_page_size, 0, range(100))
    ranked = search_params(cand, pages, [POLY], [T], tuning=FAST)

    best = ranked[0]
    assert best.layout == LAYOUT
    assert best.params == CodecParams(POLY, T, Transform.NONE, 0)
    assert best.score.uncorrectable == 0
    assert best.layout_score == 0.5
    assert ranked[1].score.uncorrectable_ratio > 0.5


def test_search_params_skips_codes_that_cannot_hold_a_sector() -> None:
    cand = LayoutCandidate(2048, 64, 1024, 32)
    pages = _pages(build_dump(pages=2))
    assert search_params(cand, pages, [POLY], [T], tuning=FAST) == []


def test_search_params_polls_cancellation() -> None:
    class Always:
        def is_set(self):
            return True

    cand = LayoutCandidate(2048, 64, 512, 16)
    with pytest.raises(Cancelled):
        search_params(cand, _pages(build_dump(pages=2)), [POLY], [T],
                      cancel=Always())


def test_quick_test_finds_parameters(tmp_path: Path) -> None:
    path = tmp_path / "noisy.bin"
    path.write_bytes(flip_one_bit_per_sector(build_dump(pages=30)))
    logs = []
    progress = []

    result = quick_test(path, LAYOUT, [0x402B, POLY], t_values=[T],
                        tuning=FAST, log=logs.append,
                        progress=progress.append)

    best = result.best
    assert best.params == CodecParams(POLY, T, Transform.NONE, 0, False)
    assert best.score.bitflips == 120
    assert best.score.uncorrectable == 0
    assert len(result.leaderboard) == 5
    assert result.leaderboard[0] == best
    assert progress[-1] == 100.0
    assert any(line.startswith("INFO: best:") for line in logs)


def test_quick_test_caps_candidates_reproducibly(dump_file: Path) -> None:
    tuning = Tuning(max_candidates=3, max_uncorrectable=4)
    first = quick_test(dump_file, LAYOUT, [POLY, 0x402B], t_values=[T],
                       tuning=tuning)
    second = quick_test(dump_file, LAYOUT, [POLY, 0x402B], t_values=[T],
                        tuning=tuning)
    assert first == second
    assert len(first.leaderboard) == 3


def test_quick_test_without_safe_candidates(dump_file: Path) -> None:
    with pytest.raises(NoWorkingParameters):
        quick_test(dump_file, LAYOUT, [POLY], t_values=[8])


def test_quick_test_requires_aligned_file(tmp_path: Path) -> None:
    path = tmp_path / "odd.bin"
    path.write_bytes(bytes(random.Random(0).getrandbits(8)
                           for _ in range(LAYOUT.raw_page_size + 3)))
    with pytest.raises(MisalignedFile):
        quick_test(path, LAYOUT, [POLY], t_values=[T])


@pytest.mark.parametrize("offset", [-LAYOUT.raw_page_size,
                                    LAYOUT.raw_page_size * 8])
def test_quick_test_rejects_offset_outside_file(tmp_path: Path,
                                                offset: int) -> None:
    path = tmp_path / "short.bin"
    path.write_bytes(build_dump(pages=4))
    with pytest.raises(MisalignedFile):
        quick_test(path, LAYOUT, [POLY], t_values=[T], offset=offset)


def test_quick_test_on_blank_dump_has_no_result(tmp_path: Path) -> None:
    path = tmp_path / "blank.bin"
    path.write_bytes(build_dump(pages=8, erased=True))
    with pytest.raises(NoWorkingParameters, match="blank"):
        quick_test(path, LAYOUT, [POLY], t_values=[T], tuning=FAST)


def test_quick_test_skips_polynomial_without_constant_term(
        dump_file: Path) -> None:
    with pytest.raises(NoWorkingParameters, match="initialize"):
        quick_test(dump_file, LAYOUT, [0x2000], t_values=[T], tuning=FAST)
