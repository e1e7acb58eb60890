# SPDX-License-Identifier: GPL-2.0-only
# Copyright (C) 2025 Gilderchuck

import os

from .config import DEFAULT_TUNING
from .errors import NoPlausibleLayout, NoWorkingParameters, check_cancel
from .layout_search import search_layouts
from .param_search import ALL_TRANSFORMS, DEFAULT_T_VALUES, search_params
from .polys import all_polys
from .ranking import SearchResult, rank
from .sampler import sample_pages


def detect(path, polys=None, t_values=None, transforms=ALL_TRANSFORMS,
           tuning=DEFAULT_TUNING, log=None, progress=None, cancel=None):
    """Infer layout, offset and BCH parameters of a raw dump.

    The layouts are scored on a small sample, the best few are then
    searched for working codec parameters on a larger one. The result is a
    strong suggestion, not a proof: dumps with dense non-ECC spare data
    can rank the wrong geometry first.
    """
    polys = list(dict.fromkeys(polys or all_polys()))
    t_values = list(dict.fromkeys(t_values or DEFAULT_T_VALUES))

    file_size = os.path.getsize(path)
    scored = search_layouts(path, tuning, log, cancel)
    if not scored:
        raise NoPlausibleLayout(
            "no plausible NAND layouts found, the file may be too small "
            "or not a raw NAND dump")

    shortlist = scored[:max(2, tuning.max_layouts * tuning.shortlist_factor)]
    if log:
        log("INFO: layout candidates (top scores):")
        for cand in shortlist[:10]:
            log(f"INFO:    {cand}")

    if shortlist[0].score < tuning.sparse_warning_score:
        if log:
            log("WARNING: spare area does not look sparse, this dump may "
                "be data-only (no OOB) and ECC fixing may be impossible")

    best_per_layout = []
    tested = shortlist[:tuning.max_layouts]
    for i, cand in enumerate(tested):
        check_cancel(cancel)
        if progress:
            progress(i * 100.0 / len(tested))
        if log:
            log(f"INFO: testing parameters on layout {cand}")

        pages = sample_pages(path, file_size, cand.raw_page_size, cand.offset,
                             tuning.param_sample_pages, tuning.seed, cancel)
        ranked = search_params(cand, pages, polys, t_values, transforms,
                               tuning, log, cancel)
        if ranked:
            best_per_layout.append(ranked[0])
            if log:
                log(f"INFO:   best here: {ranked[0].params} "
                    f"ecc_ofs={ranked[0].layout.ecc_offset} "
                    f"ecc_len={ranked[0].layout.ecc_length} "
                    f"=> {ranked[0].score}")

    if not best_per_layout:
        raise NoWorkingParameters(
            "no working parameter set found, this could mean wrong "
            "layouts, missing OOB or an unsupported ECC scheme")

    ranked = rank(best_per_layout)
    if progress:
        progress(100.0)

    return SearchResult(ranked[0], tuple(ranked[:tuning.leaderboard_size]),
                        tuple(shortlist))
