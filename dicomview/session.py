"""
session.py - One viewing session: loaded object, window, LUT and RGBA frame.

The pipeline reacts to two events:

    new object loaded        decode first frame -> drop old LUT -> extract window
                             -> build LUT -> transcode
    window/level adjusted    update LUT -> transcode the cached frame

The first frame is decoded once per load and kept on the session, so a
window/level drag only recomputes the LUT and the RGBA frame.

All state lives on a ``ViewerSession`` instance and every call runs to
completion before returning.  A session is not safe for concurrent use:
callers must let one adjustment finish before issuing the next, since the
LUT and RGBA buffer are rewritten in place.

If a load or adjustment fails, the error is logged and re-raised and the
session keeps the object, window, LUT and frame it had before the call.
"""

import logging
from typing import Any, Optional

from pydicom.dataset import Dataset

from dicomview.attributes import DicomAttributes, read_dicom_bytes, read_dicom_file
from dicomview.config import CONFIG
from dicomview.errors import DecodeError
from dicomview.lut import lut_parameters_of, update_lut
from dicomview.transcoder import DecodedFrame, RgbaBuffer, decode_frame, render_frame
from dicomview.windowing import WindowLevel

logger = logging.getLogger(__name__)


class ViewerSession:
    """Explicit state for rendering one DICOM object at a time."""

    def __init__(self, config: Optional[dict[str, Any]] = None):
        config = config or CONFIG
        interaction = config["interaction"]
        placeholder = config["rendering"]["placeholder"]

        self.min_window_width = float(interaction["min_window_width"])
        self.width_gain = float(interaction["width_gain"])
        self.center_gain = float(interaction["center_gain"])
        self.placeholder_size = (int(placeholder["width"]), int(placeholder["height"]))
        self.placeholder_gray = int(placeholder["gray"])

        self.attributes: Optional[DicomAttributes] = None
        self.frame: Optional[DecodedFrame] = None
        self.window_level: Optional[WindowLevel] = None
        self.lut = None
        self.buffer = RgbaBuffer()

    @property
    def is_loaded(self) -> bool:
        return self.attributes is not None

    # ------------------------------------------------------------------
    # Event: new object loaded
    # ------------------------------------------------------------------

    def load_dataset(self, ds: Dataset) -> RgbaBuffer:
        """
        Make *ds* the session's object and render it.

        Monochrome objects take their window from WindowWidth/WindowCenter
        when present; RGB objects ignore both.  The previous object's LUT is
        always discarded.

        Returns
        -------
        RgbaBuffer
            The session buffer holding the new frame.

        Raises
        ------
        DecodeError
            If the object cannot be rendered.  The session is unchanged.
        """
        attrs = DicomAttributes(ds)
        try:
            frame = decode_frame(attrs)
            result = render_frame(frame, attrs, self.buffer)
        except DecodeError as exc:
            logger.error("Failed to render DICOM object: %s", exc)
            raise

        self.attributes = attrs
        self.frame = frame
        self.window_level = result.window_level
        self.lut = result.lut
        logger.info(
            "Loaded %s object, %dx%d",
            result.interpretation.value, result.width, result.height,
        )
        return self.buffer

    def load_bytes(self, byte_data: bytes) -> RgbaBuffer:
        try:
            ds = read_dicom_bytes(byte_data)
        except DecodeError as exc:
            logger.error("Failed to parse DICOM object: %s", exc)
            raise
        return self.load_dataset(ds)

    def load_file(self, path: str) -> RgbaBuffer:
        logger.debug("Loading %s", path)
        try:
            ds = read_dicom_file(path)
        except DecodeError as exc:
            logger.error("Failed to parse DICOM object %s: %s", path, exc)
            raise
        return self.load_dataset(ds)

    # ------------------------------------------------------------------
    # Event: window/level adjusted
    # ------------------------------------------------------------------

    def set_window_level(self, window_level: WindowLevel) -> Optional[RgbaBuffer]:
        """
        Replace the window and re-render.

        The new LUT is computed and transcoded as a draft; the session's LUT
        and window only change once the frame has been written.

        Returns None (and does nothing) when no object is loaded.
        """
        if not self.is_loaded:
            logger.debug("Ignoring window/level change: no DICOM object loaded")
            return None

        draft = None
        try:
            if self.lut is not None:
                params = lut_parameters_of(self.attributes)
                draft = update_lut(
                    self.lut.copy(),
                    params.rescale_slope,
                    params.rescale_intercept,
                    params.voi_function,
                    window_level,
                )
            render_frame(self.frame, self.attributes, self.buffer, draft, window_level)
        except DecodeError as exc:
            logger.error("Failed to update window/level: %s", exc)
            raise

        if draft is not None:
            self.lut[:] = draft
        self.window_level = window_level
        logger.debug("[WL] updated to %g, %g", window_level.width, window_level.center)
        return self.buffer

    def adjust_window_level(self, rel_width: float, rel_center: float) -> Optional[RgbaBuffer]:
        """
        Shift the current window by relative amounts.

        Width is clamped to the configured minimum.  Ignored when nothing is
        loaded or the object has no window.
        """
        if self.window_level is None:
            logger.debug("Ignoring window/level change: no window level available")
            return None
        return self.set_window_level(
            self.window_level.adjusted(rel_width, rel_center, self.min_window_width)
        )

    def drag_window_level(self, movement_x: float, movement_y: float) -> Optional[RgbaBuffer]:
        """Translate a pointer drag into a window adjustment (x: width, y: centre)."""
        return self.adjust_window_level(
            movement_x * self.width_gain, movement_y * self.center_gain
        )

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def render(self) -> Optional[RgbaBuffer]:
        """Transcode the cached frame with the current LUT."""
        if not self.is_loaded:
            logger.warning("No DICOM object loaded")
            return None

        try:
            result = render_frame(
                self.frame, self.attributes, self.buffer, self.lut, self.window_level
            )
        except DecodeError as exc:
            logger.error("Failed to render DICOM object: %s", exc)
            raise

        self.lut = result.lut
        self.window_level = result.window_level
        return self.buffer

    def clear(self) -> RgbaBuffer:
        """Unload the current object and show the placeholder frame."""
        self.attributes = None
        self.frame = None
        self.window_level = None
        self.lut = None

        width, height = self.placeholder_size
        gray = self.placeholder_gray
        self.buffer.fill((gray, gray, gray, 255), width, height)
        return self.buffer
