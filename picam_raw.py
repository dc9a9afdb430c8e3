import os

import numpy as np

# Raspberry Pi camera RAW dump appended to the JPEG by raspistill --raw.
# Calibrated sensor geometry, do not derive.
XNDPIX = 4128  # bytes per packed row (includes 3 bytes of row padding)
YNDPIX = 2480
NDPIX = XNDPIX * YNDPIX

PACK_NVAL = 4
PACK_NBYTE = 5
XNUPIX = XNDPIX * PACK_NVAL // PACK_NBYTE
YNUPIX = YNDPIX
NUPIX = XNUPIX * YNUPIX
SAMPLE_MAX = (1 << 10) - 1

# Complete 5-byte groups per row; the remaining bytes of a row are padding
NGROUP = XNDPIX // PACK_NBYTE


class ConversionError(Exception):
    """Base class for failures converting one input file."""


class InputSizeError(ConversionError):
    """Input buffer does not hold exactly the expected RAW byte count."""


class InputReadError(ConversionError):
    """Input file could not be read."""


def read_raw_blob(path):
    """Reads the trailing NDPIX bytes of a JPEG+RAW file as a uint8 array."""
    try:
        fsize = os.path.getsize(path)
        if fsize < NDPIX:
            raise InputSizeError(
                f"file size ({fsize}) is less than expected RAW data size ({NDPIX})")

        with open(path, 'rb') as f:
            f.seek(fsize - NDPIX)
            raw_bytes = np.fromfile(f, dtype=np.uint8, count=NDPIX)
    except OSError as e:
        raise InputReadError(f"cannot read input: {e}") from e

    if raw_bytes.size != NDPIX:
        raise InputSizeError(f"read {raw_bytes.size} bytes, expected {NDPIX}")

    return raw_bytes


def unpack_raw10(raw_bytes):
    """
    Unpacks the sensor's packed 10-bit data into a (YNUPIX, XNUPIX) uint16 grid.

    Each 5-byte group holds four samples: A[9:2], B[9:2], C[9:2], D[9:2],
    then A[1:0]B[1:0]C[1:0]D[1:0] with A in the top two bits.

    Unpacked columns past NGROUP*PACK_NVAL have no source bytes and stay 0.
    """
    if not isinstance(raw_bytes, np.ndarray):
        raw_bytes = np.frombuffer(raw_bytes, dtype=np.uint8)
    raw_bytes = raw_bytes.reshape(-1)

    if raw_bytes.size != NDPIX:
        raise InputSizeError(
            f"raw data size ({raw_bytes.size}) does not match expected ({NDPIX})")

    # Rows of complete groups of 5 bytes, padding dropped
    packed_data = raw_bytes.reshape(YNDPIX, XNDPIX)[:, :NGROUP * PACK_NBYTE]
    packed_data = packed_data.reshape(YNDPIX, NGROUP, PACK_NBYTE).astype(np.uint16)

    msbs = packed_data[:, :, :PACK_NVAL]
    lsbs = packed_data[:, :, PACK_NVAL:]

    # Shifts 6, 4, 2, 0 pick the low bit pairs of A, B, C, D
    shifts = np.arange(6, -1, -2, dtype=np.uint16)
    pixels = (msbs << 2) | ((lsbs >> shifts) & 0x03)

    unpacked = np.zeros((YNUPIX, XNUPIX), dtype=np.uint16)
    unpacked[:, :NGROUP * PACK_NVAL] = pixels.reshape(YNDPIX, NGROUP * PACK_NVAL)

    return unpacked
