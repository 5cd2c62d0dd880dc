"""
visualization.py - matplotlib helpers for rendered RGBA frames.

All plot functions follow a consistent style and return the Figure so
callers can save or display it as needed.
"""

import logging
import os

import matplotlib.pyplot as plt
from pydicom.dataset import Dataset

from dicomview.attributes import DicomAttributes
from dicomview.errors import UnsupportedPhotometricInterpretation
from dicomview.lut import build_lut, lut_parameters_of
from dicomview.transcoder import PhotometricInterpretation, RgbaBuffer, render_object
from dicomview.windowing import VoiLutFunction, default_window_level, window_level_of

logger = logging.getLogger(__name__)

# Consistent figure style across all plots
plt.rcParams.update({"figure.dpi": 100, "axes.titlesize": 11})


def save_frame_png(frame: RgbaBuffer, path: str) -> str:
    """
    Write a rendered frame to a PNG file at its native resolution.

    Returns
    -------
    str
        The path written.
    """
    folder = os.path.dirname(path)
    if folder:
        os.makedirs(folder, exist_ok=True)
    plt.imsave(path, frame.as_array())
    logger.info("Saved %dx%d frame to %s", frame.width, frame.height, path)
    return path


def plot_frame(frame: RgbaBuffer, title: str = "DICOM frame") -> plt.Figure:
    """
    Display a rendered RGBA frame.

    Parameters
    ----------
    frame : RgbaBuffer
        Output of a session render or ``render_object``.
    title : str
        Plot title.

    Returns
    -------
    plt.Figure
    """
    fig, ax = plt.subplots(figsize=(6, 6))
    ax.imshow(frame.as_array())
    ax.set_title(title)
    ax.axis("off")
    return fig


def plot_voi_function_comparison(ds: Dataset) -> plt.Figure:
    """
    Show the same monochrome object through each VOI LUT function side by side.

    The object's own window is used (or the sample range when it has none),
    together with its rescale slope and intercept.

    Raises
    ------
    UnsupportedPhotometricInterpretation
        For RGB objects, which are not windowed.
    """
    attrs = DicomAttributes(ds)
    interpretation = PhotometricInterpretation.parse(
        attrs.get_required_string("PhotometricInterpretation")
    )
    if not interpretation.is_monochrome:
        raise UnsupportedPhotometricInterpretation(interpretation.value)

    params = lut_parameters_of(attrs)
    bits_allocated = attrs.get_required_integer("BitsAllocated")
    bits_stored = attrs.get_required_integer("BitsStored")
    window = window_level_of(attrs) or default_window_level(
        attrs.get_pixel_samples(bits_allocated),
        params.rescale_slope,
        params.rescale_intercept,
    )

    functions = list(VoiLutFunction)
    fig, axes = plt.subplots(1, len(functions), figsize=(4 * len(functions), 4))

    for ax, function in zip(axes, functions):
        lut = build_lut(
            bits_stored, params.rescale_slope, params.rescale_intercept, function, window
        )
        frame = RgbaBuffer()
        render_object(attrs, frame, lut=lut, window_level=window)
        ax.imshow(frame.as_array())
        ax.set_title(f"{function.value}\n(C={window.center:g}, W={window.width:g})")
        ax.axis("off")

    fig.suptitle("VOI LUT functions (same object)", y=1.02)
    fig.tight_layout()
    return fig
