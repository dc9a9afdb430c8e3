import struct

import numpy as np
import pytest

from picam_raw import NDPIX

EXIF_ASCII = 2
EXIF_LONG = 4
EXIF_RATIONAL = 5


def pack_group(values):
    """Packs four 10-bit values the way the sensor does: 4 MSB bytes then AABBCCDD."""
    a, b, c, d = values
    low = ((a & 3) << 6) | ((b & 3) << 4) | ((c & 3) << 2) | (d & 3)
    return bytes([a >> 2, b >> 2, c >> 2, d >> 2, low])


def _ifd(entries, start):
    # entries: (tag, type, count, payload); payloads over 4 bytes go after the IFD
    data_start = start + 2 + 12 * len(entries) + 4
    head = struct.pack('<H', len(entries))
    data = b''
    for tag, typ, count, payload in entries:
        if len(payload) <= 4:
            head += struct.pack('<HHI', tag, typ, count) + payload.ljust(4, b'\x00')
        else:
            head += struct.pack('<HHII', tag, typ, count, data_start + len(data))
            data += payload
            if len(data) % 2:
                data += b'\x00'
    head += struct.pack('<I', 0)
    return head + data


def _ascii(text):
    payload = text.encode('utf-8') + b'\x00'
    return (EXIF_ASCII, len(payload), payload)


def build_jpeg(exposure=None, datetime_original=None, image_datetime=None):
    """Minimal JPEG whose only segment is an APP1 EXIF block with the given tags."""
    exif_entries = []
    if exposure is not None:
        exif_entries.append((0x829A, EXIF_RATIONAL, 1, struct.pack('<II', *exposure)))
    if datetime_original is not None:
        exif_entries.append((0x9003,) + _ascii(datetime_original))

    ifd0_entries = []
    if image_datetime is not None:
        ifd0_entries.append((0x0132,) + _ascii(image_datetime))
    if exif_entries:
        ifd0_entries.append((0x8769, EXIF_LONG, 1, struct.pack('<I', 0)))

    # IFD0 length does not depend on the pointer value
    exif_start = 8 + len(_ifd(ifd0_entries, 8))
    if exif_entries:
        ifd0_entries[-1] = (0x8769, EXIF_LONG, 1, struct.pack('<I', exif_start))

    tiff = b'II*\x00' + struct.pack('<I', 8) + _ifd(ifd0_entries, 8)
    if exif_entries:
        tiff += _ifd(exif_entries, exif_start)

    app1 = b'\xff\xe1' + struct.pack('>H', 2 + 6 + len(tiff)) + b'Exif\x00\x00' + tiff
    return b'\xff\xd8' + app1 + b'\xff\xd9'


@pytest.fixture
def zero_raw():
    return np.zeros(NDPIX, dtype=np.uint8)


@pytest.fixture
def make_capture(tmp_path):
    """Writes a JPEG+RAW capture file and returns its path."""
    def _make(name="capture.jpg", raw=None, jpeg=None):
        if jpeg is None:
            jpeg = build_jpeg(exposure=(1, 100), datetime_original='2024:05:01 22:13:07')
        if raw is None:
            raw = np.zeros(NDPIX, dtype=np.uint8)
        raw = np.asarray(raw, dtype=np.uint8).tobytes()
        path = tmp_path / name
        path.write_bytes(jpeg + raw)
        return path
    return _make


