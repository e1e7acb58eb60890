# SPDX-License-Identifier: GPL-2.0-only
# Copyright (C) 2025 Gilderchuck

import argparse
import concurrent.futures
import dataclasses
import sys
import threading

from . import __version__
from .config import DEFAULT_TUNING, load_tuning
from .detect import detect
from .errors import Cancelled, NandRecoverError
from .fixer import assess_quality, fix_dump
from .layout import Layout
from .param_search import ALL_TRANSFORMS, quick_test
from .params import CodecParams
from .polys import PRESETS, all_polys, find_by_poly, parse_poly
from .transforms import Transform, parse_transform

VERSION = __version__


# make commands pipeline-friendly by printing all messages to stderr
# (logging module might be overkill)
def eprint(*args, **kwargs):
    kwargs['file'] = sys.stderr
    print(*args, **kwargs)


def make_log(verbose):
    def log(line):
        if line.startswith("DEBUG:") and not verbose:
            return
        eprint(line)
    return log


def make_progress(verbose):
    last = [-1]

    # coalesce to whole percents, the worker never waits on us
    def progress(value):
        pct = int(value)
        if verbose and pct != last[0]:
            last[0] = pct
            eprint(f"INFO: progress {pct}%")
    return progress


def run_worker(func, *args, **kwargs):
    """Run func off the main thread, Ctrl-C asks it to stop cooperatively."""
    cancel = threading.Event()
    with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
        future = pool.submit(func, *args, cancel=cancel, **kwargs)
        while True:
            try:
                return future.result(timeout=0.2)
            except concurrent.futures.TimeoutError:
                continue
            except KeyboardInterrupt:
                eprint("WARNING: interrupted, waiting for the current page "
                       "or candidate to finish")
                cancel.set()


def add_layout_args(parser):
    group = parser.add_argument_group("layout")
    group.add_argument("--page", type=int, required=True, dest="page_size",
                       help="page data size in bytes")
    group.add_argument("--spare", type=int, required=True, dest="spare_size",
                       help="spare (OOB) size in bytes")
    group.add_argument("--sector", type=int, required=True,
                       dest="sector_size", help="ECC step (sector) size")
    group.add_argument("--chunk", type=int, required=True, dest="chunk_size",
                       help="spare bytes per sector")
    group.add_argument("--ecc-offset", type=int, required=True,
                       help="ECC offset inside a spare chunk")
    group.add_argument("--ecc-length", type=int, required=True,
                       help="ECC length inside a spare chunk")
    group.add_argument("--offset", type=int, default=0,
                       help="byte offset of the first page in the file")


def layout_from_args(args):
    return Layout(args.page_size, args.spare_size, args.sector_size,
                  args.chunk_size, args.ecc_offset, args.ecc_length)


def suggested_args(entry):
    layout = entry.layout
    params = entry.params
    line = (f"--page {layout.page_size} --spare {layout.spare_size} "
            f"--sector {layout.sector_size} --chunk {layout.chunk_size} "
            f"--ecc-offset {layout.ecc_offset} "
            f"--ecc-length {layout.ecc_length} --offset {entry.offset} "
            f"--poly {params.poly:#x} --t {params.t} "
            f"--extra-bytes {params.extra_bytes} "
            f"--transform {params.transform}")
    if params.swap_bits:
        line += " --swap-bits"
    return line


def show_leaderboard(result):
    eprint("INFO: top results:")
    for entry in result.leaderboard:
        eprint(f"INFO:    {entry}")


def cmd_fix(args, tuning):
    layout = layout_from_args(args)
    params = CodecParams(args.poly, args.t, args.transform, args.extra_bytes,
                         args.swap_bits)
    if args.verbose:
        eprint(f"INFO: layout: {layout}")
        eprint(f"INFO: BCH parameters: {params}")
        preset = find_by_poly(params.poly)
        eprint(f"INFO: polynomial: {preset.name if preset else 'custom'}")

    report = run_worker(
        fix_dump, args.infile, args.outfile, layout, params,
        raw_outfile=args.raw_outfile, skip_erased=args.skip_erased,
        rewrite_ecc=args.rewrite_ecc, offset=args.offset, tuning=tuning,
        log=make_log(args.verbose), progress=make_progress(args.verbose))

    quality = assess_quality(report, tuning)
    if quality.level in ("clean", "minor"):
        eprint(f"INFO: {quality.message}")
    else:
        eprint(f"WARNING: {quality.message}")
    return 0


def cmd_detect(args, tuning):
    result = run_worker(
        detect, args.infile, polys=args.polys, t_values=args.t_values,
        transforms=args.transforms or ALL_TRANSFORMS, tuning=tuning,
        log=make_log(args.verbose), progress=make_progress(args.verbose))

    show_leaderboard(result)
    if result.best.offset != 0:
        eprint(f"WARNING: pages start at offset {result.best.offset}, the "
               f"file probably has a header or trailer")
    eprint("INFO: suggested settings (operator confirmation required):")
    print(suggested_args(result.best))
    return 0


def cmd_quicktest(args, tuning):
    layout = layout_from_args(args)
    result = run_worker(
        quick_test, args.infile, layout, args.polys or all_polys(),
        t_values=args.t_values, transforms=args.transforms or ALL_TRANSFORMS,
        extra_candidates=args.extra_candidates, offset=args.offset,
        try_swap_bits=args.try_swap_bits, tuning=tuning,
        log=make_log(args.verbose), progress=make_progress(args.verbose))

    show_leaderboard(result)
    print(suggested_args(result.best))
    return 0


def cmd_polys(args, tuning):
    for p in PRESETS:
        print(f"{p.poly:#07x}  m={p.m:<2}  {p.name:<26} {p.notes}")
    return 0


def build_parser():
    parser = argparse.ArgumentParser(
        description="Infer the page layout and BCH parameters of raw NAND "
        "flash dumps and correct bit errors. Messages go to stderr.")
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="verbose output")
    parser.add_argument(
        "-c", "--config", help="INI file with a [tuning] section")
    parser.add_argument(
        "--seed", type=int, help="sampling seed (default from tuning)")
    parser.add_argument("--version", action="version", version=VERSION)
    subparsers = parser.add_subparsers(dest="command", required=True)

    fix = subparsers.add_parser(
        "fix", help="correct every sector of a dump with known parameters")
    fix.add_argument("infile", help="raw NAND dump with OOB data")
    fix.add_argument(
        "-o", "--output", dest="outfile", required=True,
        help="file to write ECC corrected page data into")
    fix.add_argument(
        "--raw-out", dest="raw_outfile",
        help="also write corrected raw pages (data+spare) here")
    add_layout_args(fix)
    fix.add_argument("--poly", type=parse_poly, required=True,
                     help="primitive polynomial (0x hex or decimal)")
    fix.add_argument("--t", type=int, required=True,
                     help="BCH correction capability")
    fix.add_argument("--extra-bytes", type=int, default=0,
                     help="spare bytes protected together with the sector")
    fix.add_argument("--transform", type=parse_transform,
                     default=Transform.NONE,
                     help="ECC byte transform: none, inv, bitrev, inv+bitrev")
    fix.add_argument("--swap-bits", action="store_true",
                     help="use the bit-swapped codec mode")
    fix.add_argument("--no-skip-erased", dest="skip_erased",
                     action="store_false",
                     help="decode erased sectors as well")
    fix.add_argument("--rewrite-ecc", action="store_true",
                     help="re-encode the ECC of corrected sectors in the "
                     "raw output")
    fix.set_defaults(func=cmd_fix)

    det = subparsers.add_parser(
        "detect", help="infer layout, offset and BCH parameters")
    det.add_argument("infile", help="raw NAND dump with OOB data")
    add_search_args(det)
    det.set_defaults(func=cmd_detect)

    qt = subparsers.add_parser(
        "quicktest", help="find BCH parameters for a known layout")
    qt.add_argument("infile", help="raw NAND dump with OOB data")
    add_layout_args(qt)
    add_search_args(qt)
    qt.add_argument("--extra-bytes", type=int, action="append",
                    dest="extra_candidates",
                    help="extra message byte count to try (repeatable)")
    qt.add_argument("--no-swap-bits", dest="try_swap_bits",
                    action="store_false",
                    help="do not try the bit-swapped codec mode")
    qt.set_defaults(func=cmd_quicktest)

    polys = subparsers.add_parser(
        "polys", help="list the built-in primitive polynomials")
    polys.set_defaults(func=cmd_polys)

    return parser


def add_search_args(parser):
    parser.add_argument("--poly", type=parse_poly, action="append",
                        dest="polys",
                        help="polynomial to try (repeatable, default: "
                        "built-in catalogue)")
    parser.add_argument("--t", type=int, action="append", dest="t_values",
                        help="correction capability to try (repeatable)")
    parser.add_argument("--transform", type=parse_transform, action="append",
                        dest="transforms",
                        help="ECC transform to try (repeatable)")


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    tuning = DEFAULT_TUNING
    try:
        if args.config:
            tuning = load_tuning(args.config)
    except (OSError, ValueError) as e:
        sys.exit(f"ERROR: {e}")
    if args.seed is not None:
        tuning = dataclasses.replace(tuning, seed=args.seed)

    try:
        return args.func(args, tuning)
    except Cancelled:
        eprint("WARNING: operation cancelled, partially written output "
               "files were left in place")
        return 130
    except NandRecoverError as e:
        sys.exit(f"ERROR: {e}")
    except OSError as e:
        sys.exit(f"ERROR: unable to access file ({e.errno}): "
                 f"{e.strerror}: {e.filename}")
