"""
generate_sample_data.py - Create synthetic DICOM objects for the renderer.

Writes one small DICOM file per supported pixel layout to data/raw/ so the
renderer can be tried without real patient data: 16-bit CT with a window,
12-bit MONOCHROME1, 8-bit MONOCHROME2 with no window, a SIGMOID object and
an RGB colour test card.

Usage
-----
    python scripts/generate_sample_data.py

After running, try:
    python scripts/render_dicom.py data/raw
"""

import os
import sys
from typing import Optional

import numpy as np
import pydicom
from pydicom.dataset import FileDataset
from pydicom.uid import ExplicitVRLittleEndian

# Make sure repo root is on the path when run as a script
_REPO_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, _REPO_ROOT)

from dicomview.config import CONFIG  # noqa: E402  import after path fix

OUTPUT_FOLDER = os.path.join(_REPO_ROOT, CONFIG["paths"]["input_folder"])

CT_IMAGE_STORAGE = "1.2.840.10008.5.1.4.1.1.2"
SECONDARY_CAPTURE_STORAGE = "1.2.840.10008.5.1.4.1.1.7"


# ---------------------------------------------------------------------------
# Synthetic object profiles
# ---------------------------------------------------------------------------
_MONOCHROME_PROFILES = [
    # (filename_stem, photometric, bits_allocated, bits_stored,
    #  slope, intercept, window (width, centre) or None, voi_function, note)
    ("ct_head", "MONOCHROME2", 16, 12, 1.0, -1024.0, (400.0, 40.0), None,
     "12-bit CT, soft tissue window"),
    ("ct_bone", "MONOCHROME2", 16, 12, 1.0, -1024.0, (1800.0, 400.0), None,
     "12-bit CT, bone window"),
    ("dx_inverted", "MONOCHROME1", 16, 12, 1.0, 0.0, (3000.0, 1800.0), None,
     "12-bit radiograph, MONOCHROME1"),
    ("mr_sigmoid", "MONOCHROME2", 16, 16, 1.0, 0.0, (900.0, 600.0), "SIGMOID",
     "16-bit MR, SIGMOID VOI function"),
    ("us_8bit", "MONOCHROME2", 8, 8, 1.0, 0.0, None, None,
     "8-bit, no window attributes"),
]


def _base_dataset(path: str, sop_class: str) -> FileDataset:
    file_meta = pydicom.Dataset()
    file_meta.MediaStorageSOPClassUID = pydicom.uid.UID(sop_class)
    file_meta.MediaStorageSOPInstanceUID = pydicom.uid.generate_uid()
    file_meta.TransferSyntaxUID = ExplicitVRLittleEndian

    ds = FileDataset(path, {}, file_meta=file_meta, preamble=b"\0" * 128)
    ds.SOPClassUID = file_meta.MediaStorageSOPClassUID
    ds.SOPInstanceUID = file_meta.MediaStorageSOPInstanceUID
    ds.PatientName = "Synthetic^Phantom"
    ds.PatientID = "00000"
    return ds


def _phantom(size: int, max_value: int, seed: int) -> np.ndarray:
    """Disc phantom: background, a mid-grey disc and a bright insert, plus noise."""
    rng = np.random.default_rng(seed)
    yy, xx = np.mgrid[0:size, 0:size]
    r = np.hypot(xx - size / 2, yy - size / 2)

    pixels = np.full((size, size), 0.05 * max_value)
    pixels[r < size * 0.4] = 0.35 * max_value
    pixels[r < size * 0.12] = 0.8 * max_value
    pixels += rng.normal(0, 0.02 * max_value, size=pixels.shape)
    return pixels.clip(0, max_value)


def _make_monochrome(
    path: str,
    photometric: str,
    bits_allocated: int,
    bits_stored: int,
    slope: float,
    intercept: float,
    window: Optional[tuple[float, float]],
    voi_function: Optional[str],
    size: int = 128,
    seed: int = 42,
) -> None:
    """Write a single synthetic monochrome DICOM file."""
    max_value = (1 << bits_stored) - 1
    dtype = np.uint8 if bits_allocated == 8 else np.uint16
    pixels = _phantom(size, max_value, seed).astype(dtype)

    ds = _base_dataset(path, CT_IMAGE_STORAGE)
    ds.Modality = "OT"
    ds.Rows = size
    ds.Columns = size
    ds.SamplesPerPixel = 1
    ds.PhotometricInterpretation = photometric
    ds.PixelRepresentation = 0
    ds.BitsAllocated = bits_allocated
    ds.BitsStored = bits_stored
    ds.HighBit = bits_stored - 1
    ds.RescaleSlope = slope
    ds.RescaleIntercept = intercept
    if window is not None:
        ds.WindowWidth, ds.WindowCenter = window
    if voi_function is not None:
        ds.VOILUTFunction = voi_function
    ds.PixelData = pixels.tobytes()

    ds.save_as(path)


def _make_rgb(path: str, size: int = 128) -> None:
    """Write an 8-bit RGB colour bar test card."""
    bars = np.array(
        [
            [255, 255, 255], [255, 255, 0], [0, 255, 255], [0, 255, 0],
            [255, 0, 255], [255, 0, 0], [0, 0, 255], [0, 0, 0],
        ],
        dtype=np.uint8,
    )
    columns = np.arange(size) * len(bars) // size
    pixels = np.broadcast_to(bars[columns], (size, size, 3))

    ds = _base_dataset(path, SECONDARY_CAPTURE_STORAGE)
    ds.Modality = "OT"
    ds.Rows = size
    ds.Columns = size
    ds.SamplesPerPixel = 3
    ds.PlanarConfiguration = 0
    ds.PhotometricInterpretation = "RGB"
    ds.PixelRepresentation = 0
    ds.BitsAllocated = 8
    ds.BitsStored = 8
    ds.HighBit = 7
    ds.PixelData = np.ascontiguousarray(pixels).tobytes()

    ds.save_as(path)


def generate(output_folder: str = OUTPUT_FOLDER) -> None:
    """Generate all synthetic DICOM files into *output_folder*."""
    os.makedirs(output_folder, exist_ok=True)
    total = len(_MONOCHROME_PROFILES) + 1

    print(f"Writing {total} synthetic DICOM files to: {output_folder}")
    print("-" * 60)

    for i, profile in enumerate(_MONOCHROME_PROFILES, start=1):
        stem, photometric, bits_allocated, bits_stored, slope, intercept, window, voi, note = profile
        filename = f"{stem}.dcm"
        _make_monochrome(
            os.path.join(output_folder, filename),
            photometric, bits_allocated, bits_stored, slope, intercept, window, voi,
            seed=42 + i,
        )
        print(f"  [{i:02d}/{total}] {filename}  ({note})")

    _make_rgb(os.path.join(output_folder, "rgb_bars.dcm"))
    print(f"  [{total:02d}/{total}] rgb_bars.dcm  (8-bit RGB colour bars)")

    print("-" * 60)
    print("Done.  Render them with:")
    print("  python scripts/render_dicom.py data/raw")


if __name__ == "__main__":
    generate()
