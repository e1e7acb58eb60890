# SPDX-License-Identifier: GPL-2.0-only
# Copyright (C) 2025 Gilderchuck

"""BCH layout/parameter inference and correction for raw NAND dumps."""

__version__ = "0.1"

from .codec import (UNCORRECTABLE, BchCodec, apply_errloc, degree_from_poly,
                    ecc_bytes, message_fits, open_codec, plausible)
from .config import DEFAULT_TUNING, Tuning, load_tuning
from .detect import detect
from .errors import (Cancelled, CodecInitError, InvalidLayout,
                     MisalignedFile, NandRecoverError, NoPlausibleLayout,
                     NoWorkingParameters)
from .fixer import DumpFixer, FixReport, FixState, assess_quality, fix_dump
from .layout import Layout
from .layout_search import LayoutCandidate, search_layouts
from .param_search import quick_test, search_params
from .params import CodecParams
from .ranking import CandidateScore, Ranked, SearchResult, rank
from .sampler import load_pages, pick_pages
from .transforms import Transform, apply_transform, is_erased

__all__ = [
    "__version__",
    "UNCORRECTABLE",
    "BchCodec",
    "apply_errloc",
    "degree_from_poly",
    "ecc_bytes",
    "message_fits",
    "open_codec",
    "plausible",
    "DEFAULT_TUNING",
    "Tuning",
    "load_tuning",
    "detect",
    "Cancelled",
    "CodecInitError",
    "InvalidLayout",
    "MisalignedFile",
    "NandRecoverError",
    "NoPlausibleLayout",
    "NoWorkingParameters",
    "DumpFixer",
    "FixReport",
    "FixState",
    "assess_quality",
    "fix_dump",
    "Layout",
    "LayoutCandidate",
    "search_layouts",
    "quick_test",
    "search_params",
    "CodecParams",
    "CandidateScore",
    "Ranked",
    "SearchResult",
    "rank",
    "load_pages",
    "pick_pages",
    "Transform",
    "apply_transform",
    "is_erased",
]
