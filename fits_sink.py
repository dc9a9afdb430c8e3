import numpy as np
from astropy.io import fits

from bayer_split import PLANE_OFFSETS, PLANE_ORDER, XNPIX, YNPIX
from picam_raw import ConversionError

# Header keys written on every plane extension
KEY_EXPTIME = 'EXPTIME'
KEY_DATEOBS = 'DATE-OBS'
KEY_XOFFSET = 'XOFFSET'
KEY_YOFFSET = 'YOFFSET'

# Plane extensions start after the empty placeholder (extension 1)
FIRST_PLANE_EXT = 2


class SinkError(ConversionError):
    """The output FITS file could not be created or written."""


class FitsSink:
    """
    Multi-extension FITS output, addressed the cfitsio way.

    Extension numbers are 1-based and count the primary HDU as extension 1.
    Nothing touches the disk until close(), which writes the whole file,
    replacing any existing one.

        with FitsSink(path) as sink:
            sink.declare_images(4, width, height)
            sink.select(2)
            sink.write_plane(plane)
            sink.write_header('EXPTIME', 1.5)
    """

    def __init__(self, path=None):
        self.path = None
        self._hdus = None
        self._current = None
        if path is not None:
            self.create(path)

    def create(self, path):
        """Starts a new file with an empty, dimensionless primary HDU."""
        if self._hdus is not None:
            raise SinkError(f"sink already open for {self.path}")
        self.path = str(path)
        self._hdus = fits.HDUList([fits.PrimaryHDU()])
        self._current = 1

    def _check_open(self):
        if self._hdus is None:
            raise SinkError("sink is not open")

    def declare_images(self, count, width, height):
        """Appends `count` image extensions of width x height uint16 pixels."""
        self._check_open()
        for _ in range(count):
            self._hdus.append(fits.ImageHDU(data=np.zeros((height, width), dtype=np.uint16)))

    @property
    def num_extensions(self):
        self._check_open()
        return len(self._hdus)

    def select(self, extnum):
        """Makes extension `extnum` (1-based) the target of later writes."""
        self._check_open()
        if not 1 <= extnum <= len(self._hdus):
            raise SinkError(f"extension {extnum} out of range 1..{len(self._hdus)}")
        self._current = extnum

    def write_plane(self, data):
        self._check_open()
        hdu = self._hdus[self._current - 1]
        if hdu.data is None or hdu.data.shape != np.shape(data):
            expected = None if hdu.data is None else hdu.data.shape
            raise SinkError(
                f"plane shape {np.shape(data)} does not match extension "
                f"{self._current} shape {expected}")
        hdu.data = np.asarray(data, dtype=np.uint16)

    def write_header(self, key, value, comment=None):
        self._check_open()
        header = self._hdus[self._current - 1].header
        try:
            if comment is None:
                header[key] = value
            else:
                header[key] = (value, comment)
        except (ValueError, KeyError) as e:
            raise SinkError(f"cannot write header {key}={value!r}: {e}") from e

    def close(self, write=True):
        """Writes the file (unless `write` is False) and releases the HDUs."""
        if self._hdus is None:
            return
        hdus, self._hdus = self._hdus, None
        if not write:
            return
        try:
            hdus.writeto(self.path, overwrite=True)
        except OSError as e:
            raise SinkError(f"cannot write {self.path}: {e}") from e

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        # Nothing is written when the session failed
        self.close(write=exc_type is None)


def emit_planes(sink, planes, exposure_time=0.0, timestamp=''):
    """
    Writes R, G1, G2, B into extensions 2-5 of an open sink.

    `planes` is a sequence in PLANE_ORDER, each (YNPIX, XNPIX).
    """
    if len(planes) != len(PLANE_ORDER):
        raise SinkError(f"expected {len(PLANE_ORDER)} planes, got {len(planes)}")

    sink.declare_images(len(PLANE_ORDER), XNPIX, YNPIX)

    for i, (name, plane) in enumerate(zip(PLANE_ORDER, planes)):
        xoff, yoff = PLANE_OFFSETS[name]
        sink.select(FIRST_PLANE_EXT + i)
        sink.write_plane(plane)
        sink.write_header('EXTNAME', name, 'Bayer channel')
        sink.write_header(KEY_XOFFSET, xoff, '[pix] Bayer sub-pixel X offset')
        sink.write_header(KEY_YOFFSET, yoff, '[pix] Bayer sub-pixel Y offset')
        sink.write_header(KEY_EXPTIME, float(exposure_time), '[s] exposure time')
        sink.write_header(KEY_DATEOBS, timestamp, 'capture time (camera clock)')
