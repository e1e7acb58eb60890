# SPDX-License-Identifier: GPL-2.0-only
# Copyright (C) 2025 Gilderchuck

import os
import random

from .codec import (UNCORRECTABLE, degree_from_poly, ecc_bytes,
                    message_fits, open_codec, plausible)
from .config import DEFAULT_TUNING
from .errors import (CodecInitError, InvalidLayout, MisalignedFile,
                     NoWorkingParameters, check_cancel)
from .params import CodecParams
from .ranking import CandidateScore, Ranked, SearchResult, rank
from .sampler import sample_pages
from .transforms import Transform, apply_transform, is_erased

DEFAULT_T_VALUES = (2, 4, 8, 12, 16, 24, 32, 64)

# fixed ECC offsets inside a spare chunk seen on real controllers
# (Broadcom often uses 9)
COMMON_ECC_OFFSETS = (0, 1, 2, 4, 8, 9, 10, 12, 16)

ALL_TRANSFORMS = tuple(Transform)


def ecc_offset_candidates(chunk_size, ecc_length):
    offsets = []
    # packed against the end of the chunk
    end = chunk_size - ecc_length
    if end >= 0:
        offsets.append(end)
    if end - 1 >= 0:
        offsets.append(end - 1)
    for ofs in COMMON_ECC_OFFSETS:
        if ofs + ecc_length <= chunk_size:
            offsets.append(ofs)
    return list(dict.fromkeys(offsets))


def extra_byte_candidates(ecc_offset):
    values = (0, ecc_offset, ecc_offset - 1, ecc_offset - 2)
    return list(dict.fromkeys(v for v in values if 0 <= v <= ecc_offset))


def guess_t_values(ecc_length, m):
    """Capabilities worth trying for a known ECC length and field degree."""
    guess = round(ecc_length * 8 / m)
    values = (guess - 1, guess, guess + 1, 2, 4, 8, 16)
    return list(dict.fromkeys(t for t in values if 0 < t <= 64))


def evaluate(codec, layout, params, pages, cancel=None,
             max_uncorrectable=None):
    """Try to decode every non-erased sector of the sampled pages.

    Pure apart from the codec handle, the sampled pages are not modified.
    """
    checked = ok = uncorrectable = bitflips = 0
    extra = params.extra_bytes

    for raw in pages:
        check_cancel(cancel)
        if len(raw) < layout.raw_page_size:
            continue

        for step in range(layout.step_count):
            sector, oob, ecc = layout.split(raw, step, extra)
            if is_erased(sector) and is_erased(oob) and is_erased(ecc):
                continue

            checked += 1
            message = bytearray(sector + oob)
            ecc = apply_transform(bytearray(ecc), params.transform)

            flips = codec.decode_and_correct(message, ecc)
            if flips == UNCORRECTABLE:
                uncorrectable += 1
            else:
                ok += 1
                bitflips += flips

        # wrong parameters fail almost everything, stop paying for them
        if max_uncorrectable and uncorrectable > max_uncorrectable:
            break

    return CandidateScore(checked, ok, uncorrectable, bitflips)


def search_params(cand, pages, polys, t_values, transforms=ALL_TRANSFORMS,
                  tuning=DEFAULT_TUNING, log=None, cancel=None):
    """Rank every codec parameter set that fits a layout candidate.

    Returns the ranked list of scored (layout, parameters) pairs, the
    ECC offset and length being filled in from the parameters.
    """
    results = []

    for t in sorted({t for t in t_values if t > 0}):
        check_cancel(cancel)

        for poly in dict.fromkeys(polys):
            check_cancel(cancel)

            try:
                m = degree_from_poly(poly)
            except ValueError:
                continue

            if not plausible(m, t):
                if log:
                    log(f"DEBUG: skip invalid BCH m={m} t={t} "
                        f"poly={poly:#x} (m*t > 2^m-1)")
                continue

            ecc_length = ecc_bytes(m, t)
            if ecc_length > cand.chunk_size:
                continue

            try:
                with open_codec(m, t, poly) as codec:
                    results.extend(_evaluate_offsets(
                        codec, cand, pages, transforms, tuning, log, cancel))
            except CodecInitError as e:
                if log:
                    log(f"DEBUG: {e}")

    return rank(results)


def _evaluate_offsets(codec, cand, pages, transforms, tuning, log, cancel):
    results = []
    for ecc_offset in ecc_offset_candidates(cand.chunk_size, codec.ecc_bytes):
        check_cancel(cancel)

        layout = cand.with_ecc(ecc_offset, codec.ecc_bytes)
        try:
            layout.validate()
        except InvalidLayout:
            continue

        for tf in transforms:
            check_cancel(cancel)
            for extra in extra_byte_candidates(ecc_offset):
                if not codec.fits(layout.sector_size + extra):
                    continue

                params = CodecParams(codec.poly, codec.t, tf, extra)
                score = evaluate(codec, layout, params, pages, cancel,
                                 tuning.max_uncorrectable)
                if score.checked <= 0:
                    continue

                results.append(Ranked(layout, cand.offset, params, score,
                                      cand.score))
                if log:
                    log(f"DEBUG:   {layout} | {params} => {score}")
    return results


def quick_test(path, layout, polys, t_values=None, transforms=ALL_TRANSFORMS,
               extra_candidates=None, offset=0, try_swap_bits=True,
               tuning=DEFAULT_TUNING, log=None, progress=None, cancel=None):
    """Find the codec parameters of a dump whose layout is already known."""
    layout.validate()

    file_size = os.path.getsize(path)
    if (offset < 0 or file_size < offset
            or (file_size - offset) % layout.raw_page_size != 0):
        raise MisalignedFile(f"file size {file_size} (offset {offset}) is "
                             f"not a multiple of raw page size "
                             f"{layout.raw_page_size}")

    pages = sample_pages(path, file_size, layout.raw_page_size, offset,
                         tuning.quick_sample_pages, tuning.seed, cancel)
    total = (file_size - offset) // layout.raw_page_size
    if log:
        log(f"INFO: sampling {len(pages)} pages out of {total}")

    if extra_candidates is None:
        ecc_offset = layout.ecc_offset
        extra_candidates = (0, min(4, ecc_offset), min(8, ecc_offset),
                            ecc_offset)
    extras = sorted({v for v in extra_candidates
                     if 0 <= v <= layout.ecc_offset
                     and v <= layout.chunk_size})

    candidates = []
    for poly in dict.fromkeys(polys):
        try:
            m = degree_from_poly(poly)
        except ValueError:
            continue

        ts = t_values if t_values else guess_t_values(layout.ecc_length, m)
        for t in dict.fromkeys(t for t in ts if t > 0):
            # the decoder reads exactly ecc_bytes(m, t) bytes, anything
            # else would read the wrong part of the chunk
            if not plausible(m, t) or ecc_bytes(m, t) != layout.ecc_length:
                continue
            for swap_bits in ((False, True) if try_swap_bits else (False,)):
                for tf in dict.fromkeys(transforms):
                    for extra in extras:
                        if message_fits(m, t, layout.sector_size + extra):
                            candidates.append(
                                CodecParams(poly, t, tf, extra, swap_bits))

    if not candidates:
        raise NoWorkingParameters(
            "no safe candidates, adjust the ECC length of the layout or "
            "provide compatible polynomials/t values")

    if len(candidates) > tuning.max_candidates:
        if log:
            log(f"INFO: {len(candidates)} candidate sets, capping to "
                f"{tuning.max_candidates}")
        random.Random(tuning.seed ^ 0x5A17).shuffle(candidates)
        candidates = candidates[:tuning.max_candidates]

    if log:
        log(f"INFO: testing {len(candidates)} candidate parameter sets")

    initialized = 0
    results = []
    for i, params in enumerate(candidates):
        check_cancel(cancel)
        try:
            with open_codec(params.m, params.t, params.poly,
                            params.swap_bits) as codec:
                score = evaluate(codec, layout, params, pages, cancel,
                                 tuning.max_uncorrectable)
        except CodecInitError as e:
            if log:
                log(f"DEBUG: {e}")
            continue

        initialized += 1
        if score.checked <= 0:
            continue
        results.append(Ranked(layout, offset, params, score))
        if log:
            log(f"DEBUG: {params} => {score}")
        if progress and i % 8 == 0:
            progress((i + 1) * 100.0 / len(candidates))

    if not results:
        if initialized:
            raise NoWorkingParameters(
                "no sampled sector holds data, the dump looks blank or the "
                "offset is wrong")
        raise NoWorkingParameters(
            "all BCH candidates failed to initialize, try different "
            "polynomials or t values, or check that the ECC length matches")

    ranked = rank(results)
    if log:
        log(f"INFO: best: {ranked[0].params} => {ranked[0].score}")
    if progress:
        progress(100.0)

    return SearchResult(ranked[0], tuple(ranked[:tuning.leaderboard_size]))
