"""
errors.py - Typed failures raised while decoding a DICOM object for display.

Every error the viewer core can raise derives from ``DecodeError`` so that
callers (the session, scripts, a UI) can catch one type, report the message
and keep the last successfully rendered image on screen.
"""


class DecodeError(Exception):
    """Base class for all pixel decoding and windowing failures."""


class UnreadableObject(DecodeError):
    """The byte stream could not be parsed as a DICOM object."""


class MissingAttribute(DecodeError):
    """A required attribute is absent from the data set."""

    def __init__(self, keyword: str):
        super().__init__(f"Could not fetch {keyword}")
        self.keyword = keyword


class MalformedAttribute(DecodeError):
    """An attribute is present but has the wrong type or cannot be parsed."""

    def __init__(self, keyword: str, detail: str):
        super().__init__(f"{keyword} is malformed: {detail}")
        self.keyword = keyword


class UnsupportedPhotometricInterpretation(DecodeError):
    def __init__(self, value: str):
        super().__init__(f"Unsupported photometric interpretation {value}")
        self.value = value


class UnsupportedBitsAllocated(DecodeError):
    def __init__(self, bits_allocated: int):
        super().__init__(f"Unsupported bits-allocated value {bits_allocated}")
        self.bits_allocated = bits_allocated


class UnsupportedEncoding(DecodeError):
    """Pixel data is encapsulated (compressed) and cannot be transcoded."""


class UnsupportedTransferFunction(DecodeError):
    def __init__(self, name: str):
        super().__init__(f"Unsupported VOI LUT function {name}")
        self.name = name


class DimensionMismatch(DecodeError):
    """Sample count does not agree with rows, columns and samples per pixel."""


class PixelValueOutOfRange(DecodeError):
    """A stored sample value lies outside the LUT domain (2^BitsStored)."""

    def __init__(self, value: int, lut_size: int):
        super().__init__(
            f"Pixel value {value} is outside the LUT domain [0, {lut_size - 1}]"
        )
        self.value = value
        self.lut_size = lut_size


class InvalidWindowLevel(DecodeError, ValueError):
    """Window width violates the precondition of the selected VOI LUT function."""
