"""
windowing.py - Window/level parameters and VOI LUT transfer functions.

WHY THIS MATTERS
----------------
Stored pixel values usually span far more than the 256 grey levels a screen
can show (12- or 16-bit CT, MR, DX).  After the modality rescale

    x = stored_value * RescaleSlope + RescaleIntercept

a *window* (centre and width) selects the clinically relevant part of that
range and maps it onto display values 0-255.  DICOM defines three transfer
functions for that mapping:

    LINEAR        C.11.2.1.2.1  the classic window, with the (w - 1) offsets
    LINEAR_EXACT  C.11.2.1.3.2  a pure linear ramp from c - w/2 to c + w/2
    SIGMOID       C.11.2.1.3.1  a smooth S-curve centred on c

The functions below accept either a scalar or a NumPy array for *x* so the
same code evaluates a single value and a whole lookup table.

References
----------
- DICOM PS3.3 C.11.2 VOI LUT Module
- DICOM PS3.3, attribute (0028,1050)/(0028,1051): WindowCenter/WindowWidth
- DICOM PS3.3, attribute (0028,1056): VOILUTFunction
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

import numpy as np

from dicomview.attributes import DicomAttributes
from dicomview.errors import InvalidWindowLevel, UnsupportedTransferFunction

logger = logging.getLogger(__name__)

ArrayOrFloat = Union[float, np.ndarray]

Y_MIN = 0.0
Y_MAX = 255.0


@dataclass(frozen=True)
class WindowLevel:
    """A window width/centre pair.  Replaced wholesale, never mutated."""
    width: float
    center: float

    def adjusted(
        self,
        rel_width: float,
        rel_center: float,
        min_width: float = 1.0,
    ) -> "WindowLevel":
        """Return a new window shifted by the given deltas, width clamped to *min_width*."""
        return WindowLevel(
            width=max(self.width + rel_width, min_width),
            center=self.center + rel_center,
        )


class VoiLutFunction(Enum):
    LINEAR = "LINEAR"
    LINEAR_EXACT = "LINEAR_EXACT"
    SIGMOID = "SIGMOID"

    @classmethod
    def parse(cls, name: Optional[str]) -> "VoiLutFunction":
        """Map a VOILUTFunction value to a member; absent means LINEAR."""
        if name is None:
            return cls.LINEAR
        try:
            return cls(name.strip().upper())
        except ValueError:
            raise UnsupportedTransferFunction(name) from None


def _finish(y: np.ndarray) -> ArrayOrFloat:
    return float(y) if np.ndim(y) == 0 else y


def window_level_linear(x: ArrayOrFloat, width: float, center: float) -> ArrayOrFloat:
    """
    Standard linear VOI function (PS3.3 C.11.2.1.2.1).

    Parameters
    ----------
    x : float or np.ndarray
        Rescaled input value(s).
    width : float
        Window width, must be >= 1.
    center : float
        Window centre.

    Returns
    -------
    float or np.ndarray
        Display value(s) in [0, 255].
    """
    if width < 1:
        raise InvalidWindowLevel(f"LINEAR requires window width >= 1, got {width}")

    lower = center - (width - 1) / 2
    upper = center - 0.5 + (width - 1) / 2
    x = np.asarray(x, dtype=np.float64)

    # A width of exactly 1 is a threshold at the centre; the ramp below
    # would divide by zero but is never selected in that case.
    with np.errstate(divide="ignore", invalid="ignore"):
        ramp = ((x - (center - 0.5)) / (width - 1) + 0.5) * (Y_MAX - Y_MIN) + Y_MIN
    y = np.where(x <= lower, Y_MIN, np.where(x > upper, Y_MAX, ramp))
    return _finish(y)


def window_level_linear_exact(x: ArrayOrFloat, width: float, center: float) -> ArrayOrFloat:
    """Exact linear VOI function (PS3.3 C.11.2.1.3.2); width must be >= 0."""
    if width < 0:
        raise InvalidWindowLevel(f"LINEAR_EXACT requires window width >= 0, got {width}")

    lower = center - width / 2
    upper = center + width / 2
    x = np.asarray(x, dtype=np.float64)

    with np.errstate(divide="ignore", invalid="ignore"):
        ramp = ((x - center) / width + 0.5) * (Y_MAX - Y_MIN) + Y_MIN
    y = np.where(x <= lower, Y_MIN, np.where(x > upper, Y_MAX, ramp))
    return _finish(y)


def window_level_sigmoid(x: ArrayOrFloat, width: float, center: float) -> ArrayOrFloat:
    """Sigmoid VOI function (PS3.3 C.11.2.1.3.1); width must be >= 1."""
    if width < 1:
        raise InvalidWindowLevel(f"SIGMOID requires window width >= 1, got {width}")

    x = np.asarray(x, dtype=np.float64)
    # exp() overflows to inf far below the centre, which correctly yields 0
    with np.errstate(over="ignore"):
        y = (Y_MAX - Y_MIN) / (1.0 + np.exp(-4.0 * (x - center) / width)) + Y_MIN
    return _finish(y)


_TRANSFER_FUNCTIONS = {
    VoiLutFunction.LINEAR: window_level_linear,
    VoiLutFunction.LINEAR_EXACT: window_level_linear_exact,
    VoiLutFunction.SIGMOID: window_level_sigmoid,
}


def apply_window_level(
    x: ArrayOrFloat,
    voi_function: VoiLutFunction,
    window_level: WindowLevel,
) -> ArrayOrFloat:
    """Evaluate the selected transfer function for *x*."""
    func = _TRANSFER_FUNCTIONS[voi_function]
    return func(x, window_level.width, window_level.center)


# ---------------------------------------------------------------------------
# Extraction from a data set
# ---------------------------------------------------------------------------

def window_level_of(attrs: DicomAttributes) -> Optional[WindowLevel]:
    """
    Read WindowWidth/WindowCenter from a data set.

    Multi-valued attributes contribute their first value.

    Returns
    -------
    WindowLevel or None
        None when either attribute is absent; the other one is then not
        parsed at all.

    Raises
    ------
    MalformedAttribute
        If both attributes are present and one is not numeric.
    """
    if not (attrs.has_value("WindowWidth") and attrs.has_value("WindowCenter")):
        return None

    width = attrs.get_optional_numeric("WindowWidth")
    center = attrs.get_optional_numeric("WindowCenter")

    if width is None or center is None:
        return None
    return WindowLevel(width=width, center=center)


def default_window_level(
    samples: np.ndarray,
    rescale_slope: float = 1.0,
    rescale_intercept: float = 0.0,
) -> WindowLevel:
    """
    Derive a window spanning the full rescaled range of *samples*.

    Used for objects that carry no WindowWidth/WindowCenter.
    """
    if samples.size == 0:
        return WindowLevel(width=1.0, center=rescale_intercept)

    ends = np.array([samples.min(), samples.max()], dtype=np.float64)
    ends = ends * rescale_slope + rescale_intercept
    low, high = float(ends.min()), float(ends.max())
    window = WindowLevel(width=max(high - low, 1.0), center=(low + high) / 2)
    logger.warning(
        "No window parameters found; using sample range: centre=%.1f, width=%.1f",
        window.center, window.width,
    )
    return window
