import cv2
import numpy as np

from bayer_split import BAYER_TILE, PLANE_ORDER
from picam_raw import SAMPLE_MAX

# full: the whole 10-bit sensor range; auto: percentile stretch for faint frames
SCALING_METHODS = ('auto', 'full')
AUTO_PERCENTILES = (0.5, 99.5)


def scale_frame(frame_16bit, method):
    """Stretches 10-bit samples between a black and a white level into 8 bits."""
    if method == 'full':
        low, high = 0, SAMPLE_MAX
    elif method == 'auto':
        low, high = np.percentile(frame_16bit, AUTO_PERCENTILES)
    else:
        raise ValueError(f"Unknown scaling method: {method}")

    if high <= low:
        return np.zeros_like(frame_16bit, dtype=np.uint8)
    scaled = (np.clip(frame_16bit, low, high) - low) * (255.0 / (high - low))
    return np.rint(scaled).astype(np.uint8)


def remosaic(planes):
    """Interleaves R, G1, G2, B planes back into a BGGR mosaic in sensor row order."""
    height, width = planes[0].shape
    mosaic = np.empty((2 * height, 2 * width), dtype=np.uint16)
    for name, plane in zip(PLANE_ORDER, planes):
        row, col = BAYER_TILE[name]
        # Planes are stored flipped, undo it before interleaving
        mosaic[row::2, col::2] = plane[::-1]
    return mosaic


def render_quicklook(planes, method='auto'):
    """Demosaics the planes into an 8-bit BGR image in the same orientation as the planes."""
    bayer_frame_16bit = remosaic(planes)
    # OpenCV names Bayer codes after the second row, so BGGR tiles are "RG"
    bgr_frame_16bit = cv2.cvtColor(bayer_frame_16bit, cv2.COLOR_BAYER_RG2BGR)
    bgr_frame_16bit = cv2.flip(bgr_frame_16bit, 0)
    return scale_frame(bgr_frame_16bit, method)


def write_quicklook(path, planes, method='auto'):
    """Writes a PNG preview of the planes. Returns False if OpenCV could not write it."""
    display_frame_8bit = render_quicklook(planes, method)
    return bool(cv2.imwrite(str(path), display_frame_8bit))
