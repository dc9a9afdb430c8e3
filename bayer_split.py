import numpy as np

from picam_raw import XNUPIX, YNUPIX, InputSizeError

# Plane size after halving, minus the fixed sensor-edge crop
XNPIX = XNUPIX // 2 - 11
YNPIX = YNUPIX // 2 - 8
NPIX = XNPIX * YNPIX

PLANE_ORDER = ("R", "G1", "G2", "B")

# Position of each channel inside the 2x2 tile: (row, col) in the unpacked grid
#   B  G1
#   G2 R
BAYER_TILE = {
    "B": (0, 0),
    "G1": (0, 1),
    "G2": (1, 0),
    "R": (1, 1),
}

# Sub-pixel registration offsets (x, y) written with each plane
PLANE_OFFSETS = {
    "R": (0.0, 1.0),
    "G1": (0.0, 0.5),
    "G2": (0.5, 1.0),
    "B": (0.5, 0.5),
}


def split_bayer(unpacked):
    """
    Splits the unpacked sensor grid into R, G1, G2, B planes.

    Each plane is (YNPIX, XNPIX) uint16 with the row order reversed, so that
    plane row 0 comes from the last tile row kept by the crop. Unpacked
    columns >= 2*XNPIX and rows >= 2*YNPIX are dropped.

    Returns a tuple of planes in PLANE_ORDER.
    """
    unpacked = np.asarray(unpacked)
    if unpacked.ndim == 1 and unpacked.size == XNUPIX * YNUPIX:
        unpacked = unpacked.reshape(YNUPIX, XNUPIX)
    if unpacked.shape != (YNUPIX, XNUPIX):
        raise InputSizeError(
            f"unpacked grid shape {unpacked.shape} does not match expected {(YNUPIX, XNUPIX)}")

    planes = []
    for name in PLANE_ORDER:
        row, col = BAYER_TILE[name]
        plane = unpacked[row:2 * YNPIX:2, col:2 * XNPIX:2][::-1]
        planes.append(np.ascontiguousarray(plane, dtype=np.uint16))

    return tuple(planes)
