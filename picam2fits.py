#!/usr/bin/env python3
"""
Converts Raspberry Pi camera JPEG+RAW captures into FITS files.

The RAW block appended to each JPEG is unpacked and split into R, G1, G2, B
planes, flipped vertically and written to extensions 2-5 of <stem>.fits.

Usage: picam2fits [-o OUTDIR] [--quicklook] input.jpg [input.jpg ...]
"""

import argparse
import os
import sys

import cv2

from bayer_split import split_bayer
from capture_metadata import NotAContainerError, read_capture_metadata
from fits_sink import FitsSink, SinkError, emit_planes
from picam_raw import InputReadError, InputSizeError, read_raw_blob, unpack_raw10
from quicklook import SCALING_METHODS, write_quicklook


def output_path(infile, outdir=None, suffix='.fits'):
    stem = os.path.splitext(os.path.basename(infile))[0]
    if outdir is None:
        outdir = os.path.dirname(infile)
    return os.path.join(outdir, stem + suffix)


def convert_file(infile, outfile, quicklook=False, scaling='auto', verbose=True):
    """
    Converts one JPEG+RAW capture to a FITS file.

    Raises InputSizeError, InputReadError, NotAContainerError or SinkError.
    """
    log = print if verbose else (lambda *args, **kwargs: None)

    log(f"Reading RAW data from {infile}...")
    raw_bytes = read_raw_blob(infile)
    metadata = read_capture_metadata(infile)
    log(f"  Exposure: {metadata.exposure_time}s, Timestamp: '{metadata.timestamp}'")

    unpacked = unpack_raw10(raw_bytes)
    del raw_bytes
    planes = split_bayer(unpacked)
    del unpacked

    log(f"Writing {outfile}...")
    with FitsSink(outfile) as sink:
        emit_planes(sink, planes, metadata.exposure_time, metadata.timestamp)

    if quicklook:
        png_file = os.path.splitext(outfile)[0] + '.png'
        try:
            if write_quicklook(png_file, planes, scaling):
                log(f"Wrote preview {png_file}")
            else:
                print(f"Warning: could not write preview {png_file}", file=sys.stderr)
        except cv2.error as e:
            print(f"Warning: preview failed for {infile}: {e}", file=sys.stderr)

    return outfile


def build_parser():
    parser = argparse.ArgumentParser(
        prog='picam2fits',
        description="Convert Raspberry Pi JPEG+RAW captures to multi-extension FITS files.")
    parser.add_argument('inputs', nargs='+', metavar='input',
                        help="JPEG file with the RAW block appended")
    parser.add_argument('-o', '--output-dir', default=None,
                        help="directory for the .fits files (default: beside each input)")
    parser.add_argument('--quicklook', action='store_true',
                        help="also write a demosaiced 8-bit PNG preview")
    parser.add_argument('--scale', choices=SCALING_METHODS, default='auto',
                        help="8-bit scaling for the preview (default: auto)")
    parser.add_argument('-q', '--quiet', action='store_true',
                        help="only report errors")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    batch = len(args.inputs) > 1

    if args.output_dir is not None and not os.path.isdir(args.output_dir):
        print(f"Error: output directory '{args.output_dir}' not found.", file=sys.stderr)
        return 1

    failed = 0
    for infile in args.inputs:
        if not os.path.isfile(infile):
            print(f"Error: {infile}: file not found.", file=sys.stderr)
            if not batch:
                return 1
            failed += 1
            continue

        outfile = output_path(infile, args.output_dir)
        try:
            convert_file(infile, outfile, quicklook=args.quicklook,
                         scaling=args.scale, verbose=not args.quiet)
        except (InputSizeError, InputReadError, NotAContainerError) as e:
            print(f"Error: {infile}: {e}", file=sys.stderr)
            if not batch:
                return 1
            failed += 1
        except SinkError as e:
            # Output side failures abort the whole run
            print(f"Error: {infile}: {e}", file=sys.stderr)
            return 1

    if batch and not args.quiet:
        print(f"Converted {len(args.inputs) - failed}/{len(args.inputs)} files.")

    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
