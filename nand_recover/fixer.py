# SPDX-License-Identifier: GPL-2.0-only
# Copyright (C) 2025 Gilderchuck

import contextlib
import enum
import os
from collections import namedtuple
from dataclasses import dataclass

from .codec import UNCORRECTABLE, open_codec
from .config import DEFAULT_TUNING
from .errors import Cancelled, MisalignedFile, check_cancel
from .transforms import apply_transform, is_erased


class FixState(enum.Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FATAL = "fatal"


@dataclass(frozen=True)
class FixReport:
    total_pages: int = 0
    erased_sectors: int = 0
    checked_sectors: int = 0
    uncorrectable_sectors: int = 0
    pages_touched: int = 0
    total_bitflips: int = 0

    @property
    def uncorrectable_ratio(self):
        if self.checked_sectors <= 0:
            return 0.0
        return self.uncorrectable_sectors / self.checked_sectors


Quality = namedtuple("Quality", "level message")


def assess_quality(report, tuning=DEFAULT_TUNING):
    if report.checked_sectors <= 0:
        return Quality("empty", "no non-erased sectors were processed, the "
                       "dump is blank or the layout is wrong")
    if report.uncorrectable_sectors == 0:
        return Quality("clean", "all checked sectors decoded")

    ratio = report.uncorrectable_ratio
    summary = (f"{report.uncorrectable_sectors} / {report.checked_sectors} "
               f"sectors uncorrectable ({ratio:.1%})")
    if ratio >= tuning.quality_fail_ratio:
        return Quality("wrong", f"{summary}, the parameters (polynomial, "
                       "transform, layout) are very likely wrong or the dump "
                       "is very noisy")
    if ratio >= tuning.quality_warn_ratio:
        return Quality("suspect", f"{summary}, the output might still be "
                       "usable but check the parameters")
    return Quality("minor", f"{summary}, usually acceptable but watch for "
                   "filesystem extraction errors")


# message & ecc are mutable bytearrays, so make sure they return updated
# values, ecc is in the decoder domain on entry and in the stored domain
# on return when return_ecc is set
def ecc_correct_chunk(codec, message, ecc, transform, return_ecc = False):
    flips = codec.decode_and_correct(message, ecc)

    # in case the ECC code itself had bit errors
    if return_ecc and flips != UNCORRECTABLE:
        ecc[:] = apply_transform(bytearray(codec.encode(message)), transform)

    return flips


class DumpFixer:
    """Single pass over a raw dump under one fixed parameter set.

    The data-only output gets the page data of every page, the optional
    raw output gets the corrected pages including the spare area.
    """

    def __init__(self, layout, params, skip_erased=True, rewrite_ecc=False,
                 offset=0, tuning=DEFAULT_TUNING, log=None, progress=None,
                 cancel=None):
        self.layout = layout
        self.params = params
        self.skip_erased = skip_erased
        self.rewrite_ecc = rewrite_ecc
        self.offset = offset
        self.tuning = tuning
        self.log = log
        self.progress = progress
        self.cancel = cancel
        self.state = FixState.IDLE

    def run(self, infile, outfile, raw_outfile=None):
        if self.state is not FixState.IDLE:
            raise RuntimeError(f"fixer already used ({self.state.value})")
        try:
            report = self._run(infile, outfile, raw_outfile)
        except Cancelled:
            self.state = FixState.CANCELLED
            raise
        except BaseException:
            self.state = FixState.FATAL
            raise
        self.state = FixState.COMPLETED
        return report

    def _check_input(self, infile):
        self.layout.validate()
        self.params.check_layout(self.layout)

        file_size = os.path.getsize(infile)
        raw_page = self.layout.raw_page_size
        if (self.offset < 0 or file_size < self.offset
                or (file_size - self.offset) % raw_page != 0):
            raise MisalignedFile(f"file size {file_size} (offset "
                                 f"{self.offset}) is not a multiple of raw "
                                 f"page size {raw_page}")
        return (file_size - self.offset) // raw_page

    def _run(self, infile, outfile, raw_outfile):
        npages = self._check_input(infile)
        layout = self.layout
        params = self.params
        raw_page_length = layout.raw_page_size
        erased_page = b"\xFF" * raw_page_length

        self.erased = self.checked = self.uncorrectable = 0
        self.bitflips = 0
        touched = 0

        with contextlib.ExitStack() as stack:
            codec = stack.enter_context(open_codec(
                params.m, params.t, params.poly, params.swap_bits))
            fi = stack.enter_context(open(infile, "rb"))
            fo = stack.enter_context(open(outfile, "wb"))
            fr = None
            if raw_outfile is not None:
                fr = stack.enter_context(open(raw_outfile, "wb"))

            self.state = FixState.STREAMING
            fi.seek(self.offset)

            for pagenum in range(npages):
                check_cancel(self.cancel)

                page = fi.read(raw_page_length)
                if len(page) != raw_page_length:
                    break

                if self.skip_erased and page == erased_page:
                    self.erased += layout.step_count
                    fo.write(page[:layout.page_size])
                    if fr is not None:
                        fr.write(page)
                else:
                    raw = bytearray(page)
                    if self._fix_page(codec, raw):
                        touched += 1
                    fo.write(raw[:layout.page_size])
                    if fr is not None:
                        fr.write(raw)

                if self.progress and pagenum % self.tuning.progress_every == 0:
                    self.progress((pagenum + 1) * 100.0 / npages)

        if self.progress:
            self.progress(100.0)

        report = FixReport(npages, self.erased, self.checked,
                           self.uncorrectable, touched, self.bitflips)
        if self.log:
            self.log(f"INFO: total pages: {report.total_pages}")
            self.log(f"INFO: erased sectors skipped: {report.erased_sectors}")
            self.log(f"INFO: checked sectors: {report.checked_sectors}")
            self.log(f"INFO: uncorrectable sectors: "
                     f"{report.uncorrectable_sectors}")
            self.log(f"INFO: modified pages: {report.pages_touched}")
            self.log(f"INFO: corrected bitflips: {report.total_bitflips}")
        return report

    def _fix_page(self, codec, raw):
        layout = self.layout
        extra = self.params.extra_bytes
        transform = self.params.transform
        changed = False

        for step in range(layout.step_count):
            sector, oob, ecc_stored = layout.split(raw, step, extra)

            if (self.skip_erased and is_erased(sector) and is_erased(oob)
                    and is_erased(ecc_stored)):
                self.erased += 1
                continue

            self.checked += 1
            original = sector + oob
            message = bytearray(original)
            ecc = apply_transform(bytearray(ecc_stored), transform)

            flips = ecc_correct_chunk(codec, message, ecc, transform,
                                      self.rewrite_ecc)
            if flips == UNCORRECTABLE:
                self.uncorrectable += 1
                continue

            self.bitflips += flips
            if message != original:
                s = layout.sector_start(step)
                c = layout.chunk_start(step)
                raw[s:s + layout.sector_size] = message[:layout.sector_size]
                raw[c:c + extra] = message[layout.sector_size:]
                changed = True

            if self.rewrite_ecc and ecc != ecc_stored:
                e = layout.chunk_start(step) + layout.ecc_offset
                raw[e:e + layout.ecc_length] = ecc
                changed = True

        return changed


def fix_dump(infile, outfile, layout, params, raw_outfile=None,
             skip_erased=True, rewrite_ecc=False, offset=0,
             tuning=DEFAULT_TUNING, log=None, progress=None, cancel=None):
    fixer = DumpFixer(layout, params, skip_erased, rewrite_ecc, offset,
                      tuning, log, progress, cancel)
    return fixer.run(infile, outfile, raw_outfile)
