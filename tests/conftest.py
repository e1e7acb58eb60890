import importlib.util
import random
import sys
from pathlib import Path

import bchlib
import pytest


def repo_root() -> Path:
    """Return the repository root holding the ``nand_recover`` package."""

    return Path(__file__).resolve().parents[1]


def _ensure_repo_on_path() -> None:
    if importlib.util.find_spec("nand_recover") is None:
        sys.path.insert(0, str(repo_root()))


_ensure_repo_on_path()

from nand_recover.layout import Layout  # noqa: E402

# 2k page, 4 x 512 byte sectors, 16 byte chunks with a 7 byte ECC at 9
LAYOUT = Layout(2048, 64, 512, 16, 9, 7)
POLY = 0x201B
T = 4
PAGES = 100


def random_bytes(rng: random.Random, n: int) -> bytes:
    return rng.getrandbits(8 * n).to_bytes(n, "little")


def build_dump(pages: int = PAGES, seed: int = 1, erased: bool = False,
               layout: Layout = LAYOUT) -> bytearray:
    """Build a clean raw dump with valid BCH ECC in every spare chunk."""

    bch = bchlib.BCH(T, prim_poly=POLY, m=13)
    rng = random.Random(seed)
    dump = bytearray(b"\xFF" * (pages * layout.raw_page_size))
    if erased:
        return dump

    for page in range(pages):
        base = page * layout.raw_page_size
        for step in range(layout.step_count):
            sector = random_bytes(rng, layout.sector_size)
            s = base + step * layout.sector_size
            e = base + layout.page_size + step * layout.chunk_size + layout.ecc_offset
            dump[s:s + layout.sector_size] = sector
            dump[e:e + layout.ecc_length] = bch.encode(sector)
    return dump


def flip_one_bit_per_sector(dump: bytes, seed: int = 2,
                            layout: Layout = LAYOUT) -> bytearray:
    rng = random.Random(seed)
    noisy = bytearray(dump)
    for page in range(len(dump) // layout.raw_page_size):
        base = page * layout.raw_page_size
        for step in range(layout.step_count):
            pos = base + step * layout.sector_size + rng.randrange(layout.sector_size)
            noisy[pos] ^= 1 << rng.randrange(8)
    return noisy


def data_only(dump: bytes, layout: Layout = LAYOUT) -> bytes:
    out = bytearray()
    for base in range(0, len(dump), layout.raw_page_size):
        out += dump[base:base + layout.page_size]
    return bytes(out)


@pytest.fixture
def clean_dump() -> bytearray:
    return build_dump()


@pytest.fixture
def dump_file(tmp_path: Path, clean_dump: bytearray) -> Path:
    path = tmp_path / "dump.bin"
    path.write_bytes(clean_dump)
    return path
