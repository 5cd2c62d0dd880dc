"""
lut.py - Stored value -> display byte lookup tables.

Windowing every pixel of a 512x512 image on each mouse move is wasteful when
the stored values can only take 2^BitsStored distinct values.  Instead the
rescale + VOI transfer function is evaluated once per possible stored value
and cached in a table:

    lut[i] = trunc(voi(i * RescaleSlope + RescaleIntercept))   clamped to 0..255

The table is rebuilt in place whenever the window or rescale parameters
change, so its allocation survives interactive window/level dragging.
"""

import logging
from dataclasses import dataclass
from typing import Union

import numpy as np

from dicomview.attributes import DicomAttributes
from dicomview.errors import MalformedAttribute
from dicomview.windowing import VoiLutFunction, WindowLevel, apply_window_level

logger = logging.getLogger(__name__)

MAX_BITS_STORED = 16


@dataclass(frozen=True)
class LutParameters:
    """Modality rescale and VOI function read from the data set."""
    rescale_slope: float = 1.0
    rescale_intercept: float = 0.0
    voi_function: VoiLutFunction = VoiLutFunction.LINEAR


def lut_parameters_of(attrs: DicomAttributes) -> LutParameters:
    """Read RescaleSlope, RescaleIntercept and VOILUTFunction with defaults."""
    slope = attrs.get_optional_numeric("RescaleSlope")
    intercept = attrs.get_optional_numeric("RescaleIntercept")
    voi_function = VoiLutFunction.parse(attrs.get_optional_string("VOILUTFunction"))
    return LutParameters(
        rescale_slope=1.0 if slope is None else slope,
        rescale_intercept=0.0 if intercept is None else intercept,
        voi_function=voi_function,
    )


def _as_voi_function(voi_function: Union[VoiLutFunction, str, None]) -> VoiLutFunction:
    if isinstance(voi_function, VoiLutFunction):
        return voi_function
    return VoiLutFunction.parse(voi_function)


def update_lut(
    lut: np.ndarray,
    rescale_slope: float,
    rescale_intercept: float,
    voi_function: Union[VoiLutFunction, str, None],
    window_level: WindowLevel,
) -> np.ndarray:
    """
    Repopulate *lut* in place for a new window or rescale.

    The whole table is computed into a draft first and only then copied
    over *lut*, so a failure leaves the previous contents intact.

    Parameters
    ----------
    lut : np.ndarray
        1-D ``uint8`` table; its length fixes the stored value domain.
    rescale_slope, rescale_intercept : float
        Modality rescale applied to each index before windowing.
    voi_function : VoiLutFunction or str
        Transfer function; a string is parsed like VOILUTFunction.
    window_level : WindowLevel
        Window to apply.

    Returns
    -------
    np.ndarray
        The same *lut* object, for chaining.

    Raises
    ------
    UnsupportedTransferFunction
        If *voi_function* names an unknown function.
    InvalidWindowLevel
        If the window width is invalid for the function.
    """
    if lut.ndim != 1 or lut.dtype != np.uint8:
        raise TypeError(f"LUT must be a 1-D uint8 array, got {lut.dtype} with shape {lut.shape}")

    voi_function = _as_voi_function(voi_function)

    x = np.arange(lut.shape[0], dtype=np.float64) * rescale_slope + rescale_intercept
    y = np.asarray(apply_window_level(x, voi_function, window_level), dtype=np.float64)

    # Truncate toward zero, then saturate to the byte range (NaN -> 0)
    y = np.nan_to_num(y, nan=0.0, posinf=255.0, neginf=0.0)
    draft = np.clip(np.trunc(y), 0, 255).astype(np.uint8)

    lut[:] = draft
    return lut


def build_lut(
    bits_stored: int,
    rescale_slope: float,
    rescale_intercept: float,
    voi_function: Union[VoiLutFunction, str, None],
    window_level: WindowLevel,
) -> np.ndarray:
    """
    Allocate a ``2**bits_stored`` entry table and populate it.

    Raises
    ------
    MalformedAttribute
        If *bits_stored* is outside 1..16.
    """
    if not 1 <= bits_stored <= MAX_BITS_STORED:
        raise MalformedAttribute(
            "BitsStored", f"expected 1..{MAX_BITS_STORED}, got {bits_stored}"
        )

    lut = np.zeros(1 << bits_stored, dtype=np.uint8)
    return update_lut(lut, rescale_slope, rescale_intercept, voi_function, window_level)


def lut_for_object(attrs: DicomAttributes, window_level: WindowLevel) -> np.ndarray:
    """Build the LUT for a monochrome object using its own rescale and VOI function."""
    bits_allocated = attrs.get_required_integer("BitsAllocated")
    bits_stored = attrs.get_required_integer("BitsStored")
    if bits_stored > bits_allocated:
        raise MalformedAttribute(
            "BitsStored", f"{bits_stored} exceeds BitsAllocated {bits_allocated}"
        )

    params = lut_parameters_of(attrs)
    logger.debug(
        "Creating LUT: %d entries, %s, slope=%g, intercept=%g, window=(%g, %g)",
        1 << bits_stored, params.voi_function.value,
        params.rescale_slope, params.rescale_intercept,
        window_level.width, window_level.center,
    )
    return build_lut(
        bits_stored,
        params.rescale_slope,
        params.rescale_intercept,
        params.voi_function,
        window_level,
    )
