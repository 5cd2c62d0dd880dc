"""
transcoder.py - Raw pixel samples -> packed RGBA display buffer.

The output is what any bitmap surface (HTML canvas ImageData, Qt QImage,
matplotlib imshow) can draw directly: ``width * height * 4`` bytes, row
major, channel order R, G, B, A with A always 255.

Supported inputs
----------------
- MONOCHROME2, 8 or 16 bits allocated: display = lut[stored]
- MONOCHROME1, 8 or 16 bits allocated: display = 255 - lut[stored]
- RGB, 3 samples per pixel, 8 bits allocated: copied through, no LUT

Every transcode validates its input and computes the full RGBA frame before
touching the output buffer, so a failed transcode leaves the previously
rendered frame in place.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

import numpy as np

from dicomview.attributes import DicomAttributes
from dicomview.errors import (
    DimensionMismatch,
    PixelValueOutOfRange,
    UnsupportedBitsAllocated,
    UnsupportedEncoding,
    UnsupportedPhotometricInterpretation,
)
from dicomview.lut import lut_for_object, lut_parameters_of
from dicomview.windowing import WindowLevel, default_window_level, window_level_of

logger = logging.getLogger(__name__)

OPAQUE = 0xFF

_SAMPLE_DTYPES = {8: np.uint8, 16: np.uint16}


class PhotometricInterpretation(Enum):
    MONOCHROME1 = "MONOCHROME1"
    MONOCHROME2 = "MONOCHROME2"
    RGB = "RGB"

    @classmethod
    def parse(cls, value: str) -> "PhotometricInterpretation":
        try:
            return cls(value.strip())
        except ValueError:
            raise UnsupportedPhotometricInterpretation(value) from None

    @property
    def is_monochrome(self) -> bool:
        return self is not PhotometricInterpretation.RGB


# ---------------------------------------------------------------------------
# Output buffer
# ---------------------------------------------------------------------------

class RgbaBuffer:
    """
    Resizable RGBA byte buffer owned by one viewing session.

    ``data`` is the same ``bytearray`` object for the buffer's whole life;
    it is grown or shrunk in place when the pixel count changes and
    overwritten in place otherwise.
    """

    def __init__(self):
        self.data = bytearray()
        self.width = 0
        self.height = 0

    def __len__(self) -> int:
        return len(self.data)

    def ensure_size(self, size: int) -> bool:
        """Resize to *size* bytes (new bytes are 255).  Returns True if resized."""
        current = len(self.data)
        if current == size:
            return False
        if current < size:
            self.data.extend(b"\xff" * (size - current))
        else:
            del self.data[size:]
        logger.debug("Resized RGBA buffer: %d -> %d bytes", current, size)
        return True

    def write(self, rgba: np.ndarray, width: int, height: int) -> None:
        """Commit a complete ``(width * height, 4)`` frame, copied straight into ``data``."""
        pixels = np.ascontiguousarray(rgba, dtype=np.uint8).reshape(-1)
        if pixels.size != width * height * 4:
            raise DimensionMismatch(
                f"RGBA frame has {pixels.size} bytes, expected {width}x{height}x4"
            )
        self.ensure_size(pixels.size)
        with memoryview(self.data) as view:
            view[:] = pixels
        self.width = width
        self.height = height

    def fill(self, rgba: tuple, width: int, height: int) -> None:
        """Paint every pixel with one RGBA colour."""
        frame = np.empty((width * height, 4), dtype=np.uint8)
        frame[:] = rgba
        self.write(frame, width, height)

    def as_array(self) -> np.ndarray:
        """Return a ``(height, width, 4)`` copy of the current frame."""
        return np.frombuffer(bytes(self.data), dtype=np.uint8).reshape(
            self.height, self.width, 4
        )


# ---------------------------------------------------------------------------
# Transcoders
# ---------------------------------------------------------------------------

def _frame_size(width: Optional[int], height: Optional[int], pixel_count: int) -> tuple[int, int]:
    if width is None or height is None:
        return pixel_count, 1
    if width * height != pixel_count:
        raise DimensionMismatch(
            f"{pixel_count} pixels do not fill a {width}x{height} frame"
        )
    return width, height


def transcode_monochrome(
    output: RgbaBuffer,
    samples: Union[np.ndarray, list],
    interpretation: PhotometricInterpretation,
    bits_allocated: int,
    lut: np.ndarray,
    width: Optional[int] = None,
    height: Optional[int] = None,
) -> RgbaBuffer:
    """
    Map monochrome samples through *lut* into *output*.

    Parameters
    ----------
    output : RgbaBuffer
        Destination, resized only if the pixel count changed.
    samples : array-like
        One stored value per pixel.
    interpretation : PhotometricInterpretation
        MONOCHROME1 inverts the display value, MONOCHROME2 does not.
    bits_allocated : int
        8 or 16.
    lut : np.ndarray
        Table from ``build_lut``; every sample must index into it.
    width, height : int, optional
        Frame size; defaults to a single row.

    Raises
    ------
    UnsupportedPhotometricInterpretation, UnsupportedBitsAllocated,
    PixelValueOutOfRange, DimensionMismatch
    """
    if not interpretation.is_monochrome:
        raise UnsupportedPhotometricInterpretation(interpretation.value)
    if bits_allocated not in _SAMPLE_DTYPES:
        raise UnsupportedBitsAllocated(bits_allocated)

    samples = np.asarray(samples).reshape(-1)
    if samples.size and not np.issubdtype(samples.dtype, np.integer):
        raise DimensionMismatch(f"Expected integer samples, got {samples.dtype}")
    width, height = _frame_size(width, height, samples.size)

    if samples.size:
        low, high = int(samples.min()), int(samples.max())
        limit = min(len(lut), 1 << bits_allocated)
        if low < 0:
            raise PixelValueOutOfRange(low, limit)
        if high >= limit:
            raise PixelValueOutOfRange(high, limit)

    display = lut[samples.astype(np.intp)]
    if interpretation is PhotometricInterpretation.MONOCHROME1:
        display = OPAQUE - display

    rgba = np.empty((samples.size, 4), dtype=np.uint8)
    rgba[:, :3] = display[:, np.newaxis]
    rgba[:, 3] = OPAQUE

    output.write(rgba, width, height)
    return output


def transcode_rgb(
    output: RgbaBuffer,
    raw: Union[bytes, bytearray, np.ndarray],
    samples_per_pixel: int = 3,
    bits_allocated: int = 8,
    width: Optional[int] = None,
    height: Optional[int] = None,
    planar: bool = False,
) -> RgbaBuffer:
    """
    Copy 8-bit RGB samples into *output*, adding an opaque alpha channel.

    *raw* is colour-by-pixel (R1 G1 B1 R2 ...) unless *planar* is set, in
    which case it holds all red samples, then green, then blue
    (PlanarConfiguration 1).
    """
    if samples_per_pixel != 3:
        raise DimensionMismatch(f"Expected 3 samples per pixel, got {samples_per_pixel}")
    if bits_allocated != 8:
        raise UnsupportedBitsAllocated(bits_allocated)

    if isinstance(raw, (bytes, bytearray)):
        raw = np.frombuffer(bytes(raw), dtype=np.uint8)
    raw = np.asarray(raw, dtype=np.uint8).reshape(-1)
    if raw.size % 3:
        raise DimensionMismatch(f"{raw.size} RGB bytes do not split into whole pixels")

    pixel_count = raw.size // 3
    width, height = _frame_size(width, height, pixel_count)

    if planar:
        triples = raw.reshape(3, pixel_count).T
    else:
        triples = raw.reshape(pixel_count, 3)

    rgba = np.empty((pixel_count, 4), dtype=np.uint8)
    rgba[:, :3] = triples
    rgba[:, 3] = OPAQUE

    output.write(rgba, width, height)
    return output


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------

@dataclass
class DecodedFrame:
    """First-frame samples of one object, decoded once at load."""
    interpretation: PhotometricInterpretation
    width: int
    height: int
    bits_allocated: int
    samples: np.ndarray
    planar: bool = False


@dataclass
class RenderResult:
    """What a render produced, beyond the pixels written to the buffer."""
    width: int
    height: int
    interpretation: PhotometricInterpretation
    lut: Optional[np.ndarray] = None
    window_level: Optional[WindowLevel] = None


def _first_frame(
    samples: np.ndarray,
    pixel_count: int,
    samples_per_pixel: int,
    number_of_frames: int,
) -> np.ndarray:
    """
    Trim *samples* to the first frame.

    PixelData is padded to an even length, so 8-bit data may carry one
    trailing byte beyond the declared frames.
    """
    frame = pixel_count * samples_per_pixel
    total = frame * number_of_frames
    padded = samples.itemsize == 1 and total % 2 == 1 and samples.size == total + 1
    if samples.size != total and not padded:
        raise DimensionMismatch(
            f"PixelData holds {samples.size} samples, expected {total} "
            f"({number_of_frames} frame(s) of {pixel_count} pixels x {samples_per_pixel})"
        )
    if number_of_frames > 1:
        logger.debug("Multi-frame object: rendering frame 1 of %d", number_of_frames)
    return samples[:frame]


def decode_frame(attrs: DicomAttributes) -> DecodedFrame:
    """
    Validate the image attributes of one object and extract its first frame.

    Window attributes are not read here; RGB objects never need them.

    Raises
    ------
    UnsupportedEncoding
        Before any other work, for encapsulated pixel data.
    UnsupportedPhotometricInterpretation, UnsupportedBitsAllocated,
    DimensionMismatch, MissingAttribute, MalformedAttribute
    """
    if attrs.is_encapsulated():
        raise UnsupportedEncoding(
            f"Encapsulated pixel data (transfer syntax {attrs.transfer_syntax}) is not supported"
        )

    interpretation = PhotometricInterpretation.parse(
        attrs.get_required_string("PhotometricInterpretation")
    )
    width = attrs.get_required_integer("Columns")
    height = attrs.get_required_integer("Rows")
    bits_allocated = attrs.get_required_integer("BitsAllocated")
    number_of_frames = attrs.get_optional_integer("NumberOfFrames") or 1

    if interpretation is PhotometricInterpretation.RGB:
        samples_per_pixel = attrs.get_required_integer("SamplesPerPixel")
        if samples_per_pixel != 3:
            raise DimensionMismatch(f"Expected 3 samples per pixel, got {samples_per_pixel}")
        if bits_allocated != 8:
            raise UnsupportedBitsAllocated(bits_allocated)
        raw = _first_frame(
            attrs.get_pixel_samples(bits_allocated), width * height, 3, number_of_frames
        )
        planar = attrs.get_optional_integer("PlanarConfiguration") == 1
        return DecodedFrame(interpretation, width, height, bits_allocated, raw, planar)

    samples_per_pixel = attrs.get_optional_integer("SamplesPerPixel") or 1
    if samples_per_pixel != 1:
        raise DimensionMismatch(
            f"{interpretation.value} requires 1 sample per pixel, got {samples_per_pixel}"
        )
    samples = _first_frame(
        attrs.get_pixel_samples(bits_allocated), width * height, 1, number_of_frames
    )
    return DecodedFrame(interpretation, width, height, bits_allocated, samples)


def render_frame(
    frame: DecodedFrame,
    attrs: DicomAttributes,
    output: RgbaBuffer,
    lut: Optional[np.ndarray] = None,
    window_level: Optional[WindowLevel] = None,
) -> RenderResult:
    """
    Transcode an already decoded frame into *output*.

    Monochrome frames are mapped through *lut*; when no LUT is given one
    is built from *window_level*, then from the object's own window
    attributes, then from the sample range.  RGB frames bypass the LUT
    and the window, and both are handed back unchanged.
    """
    if frame.interpretation is PhotometricInterpretation.RGB:
        transcode_rgb(
            output, frame.samples, 3, frame.bits_allocated,
            frame.width, frame.height, planar=frame.planar,
        )
        return RenderResult(
            frame.width, frame.height, frame.interpretation,
            lut=lut, window_level=window_level,
        )

    if lut is None:
        if window_level is None:
            window_level = window_level_of(attrs)
        if window_level is None:
            params = lut_parameters_of(attrs)
            window_level = default_window_level(
                frame.samples, params.rescale_slope, params.rescale_intercept
            )
        lut = lut_for_object(attrs, window_level)

    transcode_monochrome(
        output, frame.samples, frame.interpretation, frame.bits_allocated,
        lut, frame.width, frame.height,
    )
    return RenderResult(
        frame.width, frame.height, frame.interpretation,
        lut=lut, window_level=window_level,
    )


def render_object(
    attrs: DicomAttributes,
    output: RgbaBuffer,
    lut: Optional[np.ndarray] = None,
    window_level: Optional[WindowLevel] = None,
) -> RenderResult:
    """
    Decode and transcode the pixel data of one object into *output*.

    Returns
    -------
    RenderResult
        Frame size plus the LUT and window actually used.
    """
    return render_frame(decode_frame(attrs), attrs, output, lut, window_level)
