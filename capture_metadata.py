import re
import sys
from collections import namedtuple
from fractions import Fraction

import exifread

from picam_raw import ConversionError

JPEG_SOI = b'\xff\xd8'

EXPOSURE_TAG = 'EXIF ExposureTime'
# First match wins
TIMESTAMP_TAGS = ('EXIF DateTimeOriginal', 'Image DateTime')
# exifread stops parsing once this tag has been read
STOP_TAG = 'DateTimeOriginal'

EXIF_DATETIME = re.compile(r'^(\d{4}):(\d{2}):(\d{2})[ T](\d{2}:\d{2}:\d{2})$')

CaptureMetadata = namedtuple('CaptureMetadata', ['exposure_time', 'timestamp'], defaults=(0.0, ''))


class NotAContainerError(ConversionError):
    """Input is not a JPEG container, so it carries no convertible capture."""


def exif_to_fits_date(value):
    """Rewrites 'YYYY:MM:DD HH:MM:SS' as 'YYYY-MM-DDTHH:MM:SS', else returns it unchanged."""
    value = value.strip().rstrip('\x00')
    match = EXIF_DATETIME.match(value)
    if not match:
        return value
    year, month, day, clock = match.groups()
    return f"{year}-{month}-{day}T{clock}"


def _exposure_seconds(tag):
    # Ratio values print as "1/100" or "5"
    value = tag.values[0] if tag.values else None
    if value is None:
        return None
    try:
        return float(Fraction(str(value)))
    except (ValueError, ZeroDivisionError):
        return None


def read_capture_metadata(path):
    """
    Looks up exposure time and capture timestamp in the EXIF block of a JPEG.

    Missing or unreadable tags fall back to 0.0 and '' and never fail the
    conversion. Raises NotAContainerError if the file is not a JPEG at all.
    """
    try:
        f = open(path, 'rb')
    except OSError as e:
        raise NotAContainerError(f"cannot open input: {e}") from e

    with f:
        if f.read(len(JPEG_SOI)) != JPEG_SOI:
            raise NotAContainerError("no JPEG container found")
        f.seek(0)
        try:
            tags = exifread.process_file(f, details=False, stop_tag=STOP_TAG)
        except Exception as e:
            print(f"Warning: {path}: could not parse EXIF data ({e}), using defaults.",
                  file=sys.stderr)
            tags = {}

    exposure_time = 0.0
    if EXPOSURE_TAG in tags:
        seconds = _exposure_seconds(tags[EXPOSURE_TAG])
        if seconds is not None:
            exposure_time = seconds
        else:
            print(f"Warning: {path}: unreadable {EXPOSURE_TAG} '{tags[EXPOSURE_TAG]}', using 0.0.",
                  file=sys.stderr)

    timestamp = ''
    for key in TIMESTAMP_TAGS:
        if key in tags:
            timestamp = exif_to_fits_date(str(tags[key].values))
            break
    # FITS header values must be printable ASCII
    if not (timestamp.isascii() and timestamp.isprintable()):
        print(f"Warning: {path}: unreadable timestamp {timestamp!r}, using ''.",
              file=sys.stderr)
        timestamp = ''

    return CaptureMetadata(exposure_time, timestamp)
