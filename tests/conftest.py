"""Shared fixtures: synthetic in-memory DICOM objects."""

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pydicom
import pytest
from pydicom.dataset import Dataset, FileDataset
from pydicom.uid import ExplicitVRLittleEndian


def make_dataset(
    pixels: np.ndarray,
    photometric: str = "MONOCHROME2",
    bits_allocated: int = 16,
    bits_stored: int = None,
    window: tuple = None,
    slope: float = None,
    intercept: float = None,
    voi_function: str = None,
    transfer_syntax=ExplicitVRLittleEndian,
) -> Dataset:
    """
    Build a minimal pydicom Dataset around *pixels*.

    *pixels* is (rows, columns) for monochrome or (rows, columns, 3) for RGB.
    *window* is (width, center).
    """
    file_meta = pydicom.Dataset()
    file_meta.MediaStorageSOPClassUID = pydicom.uid.UID("1.2.840.10008.5.1.4.1.1.2")
    file_meta.MediaStorageSOPInstanceUID = pydicom.uid.generate_uid()
    file_meta.TransferSyntaxUID = transfer_syntax

    ds = FileDataset(filename_or_obj=None, dataset={}, file_meta=file_meta, preamble=b"\0" * 128)
    ds.SOPClassUID = file_meta.MediaStorageSOPClassUID
    ds.SOPInstanceUID = file_meta.MediaStorageSOPInstanceUID
    ds.Rows, ds.Columns = pixels.shape[:2]
    ds.SamplesPerPixel = 3 if photometric == "RGB" else 1
    ds.PhotometricInterpretation = photometric
    ds.PixelRepresentation = 0
    ds.BitsAllocated = bits_allocated
    ds.BitsStored = bits_stored if bits_stored is not None else bits_allocated
    ds.HighBit = ds.BitsStored - 1
    if photometric == "RGB":
        ds.PlanarConfiguration = 0

    if window is not None:
        ds.WindowWidth, ds.WindowCenter = window
    if slope is not None:
        ds.RescaleSlope = slope
    if intercept is not None:
        ds.RescaleIntercept = intercept
    if voi_function is not None:
        ds.VOILUTFunction = voi_function

    dtype = np.uint8 if bits_allocated == 8 else np.uint16
    ds.PixelData = np.ascontiguousarray(pixels, dtype=dtype).tobytes()
    return ds


@pytest.fixture
def dataset_factory():
    return make_dataset


@pytest.fixture
def ct_dataset():
    """2x2, 16-bit MONOCHROME2, 8 bits stored, window 256/128."""
    pixels = np.array([[0, 128], [255, 64]], dtype=np.uint16)
    return make_dataset(pixels, bits_stored=8, window=(256.0, 128.0), slope=1.0, intercept=0.0)


@pytest.fixture
def rgb_dataset():
    pixels = np.array(
        [[[255, 0, 0], [0, 255, 0]], [[0, 0, 255], [10, 20, 30]]],
        dtype=np.uint8,
    )
    return make_dataset(pixels, photometric="RGB", bits_allocated=8, window=(100.0, 50.0))
