"""
attributes.py - Typed attribute lookup over a pydicom Dataset.

The windowing and transcoding code never touches a pydicom ``Dataset``
directly.  It goes through ``DicomAttributes``, which turns pydicom's loose
value model (MultiValue, DSfloat, IS, raw bytes, empty elements) into the
handful of typed lookups the pipeline needs, and which keeps two failure
modes apart:

    absent      -> ``None`` for optional lookups, ``MissingAttribute`` otherwise
    unparsable  -> ``MalformedAttribute``

Tags may be given as DICOM keywords ("WindowWidth") or as numeric tags
(0x00281051).

References
----------
- DICOM PS3.3 C.7.6.3 Image Pixel Module
- DICOM PS3.5 A.4 Transfer Syntaxes For Encapsulation of Encoded Pixel Data
"""

import io
import logging
from typing import Optional, Union

import numpy as np
import pydicom
from pydicom.datadict import keyword_for_tag
from pydicom.dataset import Dataset
from pydicom.errors import InvalidDicomError
from pydicom.multival import MultiValue
from pydicom.tag import Tag
from pydicom.uid import UID, ExplicitVRBigEndian

from dicomview.errors import (
    DimensionMismatch,
    MalformedAttribute,
    MissingAttribute,
    UnreadableObject,
    UnsupportedBitsAllocated,
    UnsupportedEncoding,
)

logger = logging.getLogger(__name__)

TagLike = Union[str, int]


def _keyword(tag: TagLike) -> str:
    if isinstance(tag, str):
        return tag
    return keyword_for_tag(Tag(tag)) or str(Tag(tag))


def _first(value):
    """Return the first item of a multi-valued element, or the value itself."""
    if isinstance(value, (MultiValue, list, tuple)):
        return value[0] if len(value) else None
    return value


def _is_empty(value) -> bool:
    return value is None or (isinstance(value, (str, bytes)) and not value.strip())


class DicomAttributes:
    """Attribute accessor for a single parsed DICOM data set."""

    def __init__(self, ds: Dataset):
        self.ds = ds

    # ------------------------------------------------------------------
    # Raw element access
    # ------------------------------------------------------------------

    def _value(self, tag: TagLike):
        """Return the element value for *tag*, or None when absent/empty."""
        try:
            elem = self.ds.get(Tag(tag))
        except (ValueError, TypeError) as exc:
            # pydicom converts raw elements lazily, so bad bytes surface here
            raise MalformedAttribute(_keyword(tag), str(exc)) from exc
        if elem is None:
            return None
        value = _first(elem.value)
        return None if _is_empty(value) else value

    def has_value(self, tag: TagLike) -> bool:
        """True when *tag* is present with a non-empty value."""
        return self._value(tag) is not None

    # ------------------------------------------------------------------
    # Typed lookups
    # ------------------------------------------------------------------

    def get_optional_numeric(self, tag: TagLike) -> Optional[float]:
        value = self._value(tag)
        if value is None:
            return None
        try:
            return float(value)
        except (ValueError, TypeError) as exc:
            raise MalformedAttribute(
                _keyword(tag), f"{value!r} is not a number"
            ) from exc

    def get_optional_integer(self, tag: TagLike) -> Optional[int]:
        value = self._value(tag)
        if value is None:
            return None
        if isinstance(value, (int, np.integer)):
            return int(value)
        if isinstance(value, float) and value.is_integer():
            return int(value)
        if isinstance(value, (str, bytes)):
            try:
                return int(value.strip())
            except ValueError:
                pass
        raise MalformedAttribute(_keyword(tag), f"{value!r} is not an integer")

    def get_optional_string(self, tag: TagLike) -> Optional[str]:
        value = self._value(tag)
        if value is None:
            return None
        if isinstance(value, bytes):
            try:
                value = value.decode("ascii")
            except UnicodeDecodeError as exc:
                raise MalformedAttribute(_keyword(tag), "not an ASCII string") from exc
        return str(value).strip()

    def get_required_integer(self, tag: TagLike) -> int:
        value = self.get_optional_integer(tag)
        if value is None:
            raise MissingAttribute(_keyword(tag))
        return value

    def get_required_string(self, tag: TagLike) -> str:
        value = self.get_optional_string(tag)
        if value is None:
            raise MissingAttribute(_keyword(tag))
        return value

    # ------------------------------------------------------------------
    # Pixel data
    # ------------------------------------------------------------------

    @property
    def transfer_syntax(self) -> Optional[UID]:
        file_meta = getattr(self.ds, "file_meta", None)
        if file_meta is None:
            return None
        uid = file_meta.get("TransferSyntaxUID")
        return UID(uid) if uid else None

    def is_encapsulated(self) -> bool:
        """True when pixel data uses an encapsulated (compressed) encoding."""
        elem = self.ds.get(Tag("PixelData"))
        if elem is not None and elem.is_undefined_length:
            return True
        uid = self.transfer_syntax
        if uid is None:
            return False
        try:
            return uid.is_encapsulated
        except ValueError:
            # Not a known transfer syntax; undefined length already checked
            return False

    def get_pixel_bytes(self) -> bytes:
        if self.is_encapsulated():
            raise UnsupportedEncoding(
                "Encapsulated pixel data is not supported "
                f"(transfer syntax {self.transfer_syntax})"
            )
        elem = self.ds.get(Tag("PixelData"))
        if elem is None or elem.value is None:
            raise MissingAttribute("PixelData")
        return bytes(elem.value)

    def get_pixel_samples(self, bits_allocated: int) -> np.ndarray:
        """
        Interpret native PixelData as a flat array of unsigned samples.

        Parameters
        ----------
        bits_allocated : int
            Storage width per sample; only 8 and 16 are supported.

        Returns
        -------
        np.ndarray
            1-D ``uint8`` or ``uint16`` array in native byte order.
        """
        if bits_allocated not in (8, 16):
            raise UnsupportedBitsAllocated(bits_allocated)

        raw = self.get_pixel_bytes()
        if bits_allocated == 8:
            return np.frombuffer(raw, dtype=np.uint8)

        if len(raw) % 2:
            raise DimensionMismatch(
                f"PixelData has {len(raw)} bytes, not a whole number of 16-bit samples"
            )
        dtype = ">u2" if self.transfer_syntax == ExplicitVRBigEndian else "<u2"
        return np.frombuffer(raw, dtype=dtype).astype(np.uint16)


# ---------------------------------------------------------------------------
# Reading objects
# ---------------------------------------------------------------------------

def read_dicom_bytes(byte_data: bytes) -> Dataset:
    """
    Parse an in-memory DICOM Part 10 stream.

    Raises
    ------
    UnreadableObject
        If the bytes are not a readable DICOM file.
    """
    try:
        ds = pydicom.dcmread(io.BytesIO(byte_data))
    except (InvalidDicomError, EOFError, ValueError, OSError) as exc:
        raise UnreadableObject(f"Failed to read DICOM data: {exc}") from exc
    logger.debug("Read DICOM object (%d bytes)", len(byte_data))
    return ds


def read_dicom_file(path: str) -> Dataset:
    """
    Load a DICOM file from disk.

    Raises
    ------
    FileNotFoundError
        If *path* does not exist.
    UnreadableObject
        If the file cannot be read as DICOM.
    """
    with open(path, "rb") as f:
        byte_data = f.read()
    return read_dicom_bytes(byte_data)
