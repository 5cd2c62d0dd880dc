"""Tests for dicomview/transcoder.py."""

import numpy as np
import pytest
from pydicom.uid import JPEGBaseline8Bit

from dicomview.attributes import DicomAttributes
from dicomview.errors import (
    DimensionMismatch,
    MalformedAttribute,
    MissingAttribute,
    PixelValueOutOfRange,
    UnsupportedBitsAllocated,
    UnsupportedEncoding,
    UnsupportedPhotometricInterpretation,
)
from dicomview.lut import build_lut
from dicomview.transcoder import (
    PhotometricInterpretation,
    RgbaBuffer,
    decode_frame,
    render_frame,
    render_object,
    transcode_monochrome,
    transcode_rgb,
)
from dicomview.windowing import VoiLutFunction, WindowLevel

MONO1 = PhotometricInterpretation.MONOCHROME1
MONO2 = PhotometricInterpretation.MONOCHROME2


def _ramp_lut(bits: int = 8) -> np.ndarray:
    return build_lut(bits, 1.0, 0.0, VoiLutFunction.LINEAR, WindowLevel(width=float(1 << bits), center=float(1 << (bits - 1))))


class TestPhotometricInterpretation:
    @pytest.mark.parametrize("value", ["MONOCHROME1", "MONOCHROME2", "RGB"])
    def test_known_values(self, value):
        assert PhotometricInterpretation.parse(value).value == value

    @pytest.mark.parametrize("value", ["YBR_FULL", "PALETTE COLOR", "monochrome2", ""])
    def test_unknown_values(self, value):
        with pytest.raises(UnsupportedPhotometricInterpretation):
            PhotometricInterpretation.parse(value)


class TestRgbaBuffer:
    def test_grows_with_opaque_fill(self):
        buf = RgbaBuffer()
        assert buf.ensure_size(8) is True
        assert bytes(buf.data) == b"\xff" * 8

    def test_same_size_is_noop(self):
        buf = RgbaBuffer()
        buf.ensure_size(8)
        assert buf.ensure_size(8) is False

    def test_shrinks_in_place(self):
        buf = RgbaBuffer()
        data = buf.data
        buf.ensure_size(16)
        buf.ensure_size(4)
        assert buf.data is data
        assert len(buf) == 4

    def test_fill_and_as_array(self):
        buf = RgbaBuffer()
        buf.fill((32, 32, 32, 255), 3, 2)
        arr = buf.as_array()
        assert arr.shape == (2, 3, 4)
        assert np.all(arr[..., :3] == 32)
        assert np.all(arr[..., 3] == 255)


class TestMonochrome:
    def test_monochrome2_uses_lut_directly(self):
        buf = RgbaBuffer()
        lut = _ramp_lut()
        transcode_monochrome(buf, np.array([0, 255], dtype=np.uint16), MONO2, 16, lut, 2, 1)
        assert list(buf.data) == [0, 0, 0, 255, 255, 255, 255, 255]

    def test_monochrome1_is_inverse_of_monochrome2(self):
        lut = _ramp_lut()
        samples = np.arange(256, dtype=np.uint8)
        mono1, mono2 = RgbaBuffer(), RgbaBuffer()
        transcode_monochrome(mono1, samples, MONO1, 8, lut)
        transcode_monochrome(mono2, samples, MONO2, 8, lut)
        a1 = np.frombuffer(bytes(mono1.data), dtype=np.uint8).reshape(-1, 4)
        a2 = np.frombuffer(bytes(mono2.data), dtype=np.uint8).reshape(-1, 4)
        np.testing.assert_array_equal(a1[:, :3], 255 - a2[:, :3])
        assert np.all(a1[:, 3] == 255)
        assert np.all(a2[:, 3] == 255)

    def test_alpha_always_opaque(self):
        buf = RgbaBuffer()
        transcode_monochrome(buf, np.array([0, 0, 0]), MONO2, 16, np.zeros(4, dtype=np.uint8))
        assert bytes(buf.data[3::4]) == b"\xff\xff\xff"

    def test_out_of_range_sample_is_error(self):
        buf = RgbaBuffer()
        buf.fill((1, 2, 3, 255), 2, 2)
        before = bytes(buf.data)
        with pytest.raises(PixelValueOutOfRange) as excinfo:
            transcode_monochrome(buf, np.array([0, 128, 255, 300]), MONO2, 16, _ramp_lut(), 2, 2)
        assert excinfo.value.value == 300
        assert bytes(buf.data) == before

    def test_unsupported_bits_allocated(self):
        with pytest.raises(UnsupportedBitsAllocated):
            transcode_monochrome(RgbaBuffer(), np.array([0]), MONO2, 12, _ramp_lut())

    def test_rgb_interpretation_rejected(self):
        with pytest.raises(UnsupportedPhotometricInterpretation):
            transcode_monochrome(RgbaBuffer(), np.array([0]), PhotometricInterpretation.RGB, 8, _ramp_lut())

    def test_dimension_mismatch(self):
        with pytest.raises(DimensionMismatch):
            transcode_monochrome(RgbaBuffer(), np.zeros(5, dtype=np.uint8), MONO2, 8, _ramp_lut(), 2, 2)

    def test_buffer_reused_for_equal_pixel_count(self):
        buf = RgbaBuffer()
        lut = _ramp_lut()
        transcode_monochrome(buf, np.array([1, 2, 3, 4]), MONO2, 16, lut, 2, 2)
        data, size = buf.data, len(buf)
        transcode_monochrome(buf, np.array([9, 8, 7, 6]), MONO2, 16, lut, 2, 2)
        assert buf.data is data
        assert len(buf) == size
        assert buf.data[0] == lut[9]

    def test_buffer_resized_for_new_pixel_count(self):
        buf = RgbaBuffer()
        lut = _ramp_lut()
        transcode_monochrome(buf, np.zeros(4, dtype=np.uint8), MONO2, 8, lut, 2, 2)
        data = buf.data
        transcode_monochrome(buf, np.zeros(9, dtype=np.uint8), MONO2, 8, lut, 3, 3)
        assert buf.data is data
        assert len(buf) == 9 * 4
        assert (buf.width, buf.height) == (3, 3)


class TestRgb:
    def test_interleaved_triples(self):
        buf = RgbaBuffer()
        transcode_rgb(buf, bytes([1, 2, 3, 4, 5, 6]), width=2, height=1)
        assert list(buf.data) == [1, 2, 3, 255, 4, 5, 6, 255]

    def test_planar_configuration(self):
        buf = RgbaBuffer()
        transcode_rgb(buf, bytes([1, 4, 2, 5, 3, 6]), planar=True)
        assert list(buf.data) == [1, 2, 3, 255, 4, 5, 6, 255]

    def test_requires_three_samples(self):
        with pytest.raises(DimensionMismatch, match="3 samples per pixel"):
            transcode_rgb(RgbaBuffer(), bytes(8), samples_per_pixel=4)

    def test_partial_triple_rejected(self):
        with pytest.raises(DimensionMismatch):
            transcode_rgb(RgbaBuffer(), bytes(7))

    def test_requires_8_bit(self):
        with pytest.raises(UnsupportedBitsAllocated):
            transcode_rgb(RgbaBuffer(), bytes(6), bits_allocated=16)


class TestRenderObject:
    def test_end_to_end_monochrome2(self, ct_dataset):
        buf = RgbaBuffer()
        result = render_object(DicomAttributes(ct_dataset), buf)
        assert (result.width, result.height) == (2, 2)
        assert result.window_level == WindowLevel(width=256.0, center=128.0)
        assert len(result.lut) == 256

        pixels = np.frombuffer(bytes(buf.data), dtype=np.uint8).reshape(-1, 4)
        expected = [0, 128, 255, 64]
        for got, want in zip(pixels, expected):
            assert abs(int(got[0]) - want) <= 1
            assert got[0] == got[1] == got[2]
            assert got[3] == 255

    def test_sample_outside_bits_stored(self, dataset_factory):
        ds = dataset_factory(
            np.array([[0, 128], [255, 300]]), bits_stored=8, window=(256.0, 128.0)
        )
        with pytest.raises(PixelValueOutOfRange):
            render_object(DicomAttributes(ds), RgbaBuffer())

    def test_uses_supplied_lut(self, ct_dataset):
        buf = RgbaBuffer()
        lut = np.full(256, 7, dtype=np.uint8)
        result = render_object(DicomAttributes(ct_dataset), buf, lut=lut)
        assert result.lut is lut
        assert set(bytes(buf.data[0::4])) == {7}

    def test_monochrome1_object(self, dataset_factory):
        ds = dataset_factory(np.array([[0, 255]]), photometric="MONOCHROME1",
                             bits_stored=8, window=(256.0, 128.0))
        buf = RgbaBuffer()
        render_object(DicomAttributes(ds), buf)
        assert list(buf.data) == [255, 255, 255, 255, 0, 0, 0, 255]

    def test_8_bit_object_with_odd_padding(self, dataset_factory):
        ds = dataset_factory(np.arange(9, dtype=np.uint8).reshape(3, 3), bits_allocated=8,
                             window=(256.0, 128.0))
        ds.PixelData = ds.PixelData + b"\x00"
        buf = RgbaBuffer()
        result = render_object(DicomAttributes(ds), buf)
        assert (result.width, result.height) == (3, 3)
        assert len(buf) == 36

    def test_no_window_uses_sample_range(self, dataset_factory):
        ds = dataset_factory(np.array([[100, 200]]), bits_stored=8)
        buf = RgbaBuffer()
        result = render_object(DicomAttributes(ds), buf)
        assert result.window_level == WindowLevel(width=100.0, center=150.0)
        assert buf.data[0] == 0
        assert buf.data[4] == 255

    def test_multi_frame_renders_first_frame(self, dataset_factory):
        frames = np.array([[[0, 255]], [[255, 0]]], dtype=np.uint16)
        ds = dataset_factory(frames[0], bits_stored=8, window=(256.0, 128.0))
        ds.NumberOfFrames = 2
        ds.PixelData = frames.tobytes()
        buf = RgbaBuffer()
        render_object(DicomAttributes(ds), buf)
        assert list(buf.data[0::4]) == [0, 255]

    def test_sample_count_mismatch(self, dataset_factory):
        ds = dataset_factory(np.zeros((2, 2)), window=(256.0, 128.0))
        ds.Rows = 3
        with pytest.raises(DimensionMismatch):
            render_object(DicomAttributes(ds), RgbaBuffer())

    def test_rgb_object_bypasses_lut(self, rgb_dataset):
        buf = RgbaBuffer()
        lut = np.zeros(256, dtype=np.uint8)
        result = render_object(DicomAttributes(rgb_dataset), buf, lut=lut)
        assert list(buf.data[:8]) == [255, 0, 0, 255, 0, 255, 0, 255]
        assert list(buf.data[12:16]) == [10, 20, 30, 255]
        assert not lut.any()
        assert result.interpretation is PhotometricInterpretation.RGB

    def test_rgb_output_independent_of_window(self, rgb_dataset):
        first, second = RgbaBuffer(), RgbaBuffer()
        render_object(DicomAttributes(rgb_dataset), first, window_level=WindowLevel(10.0, 0.0))
        render_object(DicomAttributes(rgb_dataset), second, window_level=WindowLevel(4000.0, 900.0))
        assert bytes(first.data) == bytes(second.data)

    def test_ybr_rejected_without_writing(self, dataset_factory):
        ds = dataset_factory(np.zeros((2, 2)), window=(256.0, 128.0))
        ds.PhotometricInterpretation = "YBR_FULL"
        buf = RgbaBuffer()
        buf.fill((9, 9, 9, 255), 1, 1)
        before = bytes(buf.data)
        with pytest.raises(UnsupportedPhotometricInterpretation, match="YBR_FULL"):
            render_object(DicomAttributes(ds), buf)
        assert bytes(buf.data) == before

    def test_encapsulated_rejected_first(self, dataset_factory):
        ds = dataset_factory(np.zeros((2, 2)), transfer_syntax=JPEGBaseline8Bit)
        ds.PhotometricInterpretation = "YBR_FULL_422"
        with pytest.raises(UnsupportedEncoding):
            render_object(DicomAttributes(ds), RgbaBuffer())

    def test_unsupported_bits_allocated_object(self, dataset_factory):
        ds = dataset_factory(np.zeros((2, 2)), window=(256.0, 128.0))
        ds.BitsAllocated = 32
        with pytest.raises(UnsupportedBitsAllocated):
            render_object(DicomAttributes(ds), RgbaBuffer())

    def test_missing_rows(self, ct_dataset):
        del ct_dataset.Rows
        with pytest.raises(MissingAttribute, match="Rows"):
            render_object(DicomAttributes(ct_dataset), RgbaBuffer())


class TestDecodeFrame:
    def test_monochrome_first_frame(self, dataset_factory):
        frames = np.array([[[1, 2]], [[3, 4]]], dtype=np.uint16)
        ds = dataset_factory(frames[0], bits_stored=8)
        ds.NumberOfFrames = 2
        ds.PixelData = frames.tobytes()
        frame = decode_frame(DicomAttributes(ds))
        assert frame.interpretation is MONO2
        assert (frame.width, frame.height, frame.bits_allocated) == (2, 1, 16)
        assert list(frame.samples) == [1, 2]

    def test_rgb_ignores_malformed_window(self, rgb_dataset):
        rgb_dataset.add_new(0x00281051, "LO", "wide")
        rgb_dataset.add_new(0x00281050, "LO", "40")
        attrs = DicomAttributes(rgb_dataset)
        buf = RgbaBuffer()
        result = render_frame(decode_frame(attrs), attrs, buf)
        assert result.lut is None
        assert result.window_level is None
        assert list(buf.data[:4]) == [255, 0, 0, 255]

    def test_monochrome_malformed_window_raises(self, ct_dataset):
        ct_dataset.add_new(0x00281051, "LO", "wide")
        attrs = DicomAttributes(ct_dataset)
        frame = decode_frame(attrs)
        with pytest.raises(MalformedAttribute, match="WindowWidth"):
            render_frame(frame, attrs, RgbaBuffer())

    def test_decoded_frame_renders_without_pixel_data(self, ct_dataset):
        attrs = DicomAttributes(ct_dataset)
        frame = decode_frame(attrs)
        del ct_dataset.PixelData
        buf = RgbaBuffer()
        result = render_frame(frame, attrs, buf, window_level=WindowLevel(256.0, 128.0))
        assert (result.width, result.height) == (2, 2)
        assert len(buf) == 16

    def test_write_keeps_same_bytearray(self, ct_dataset):
        buf = RgbaBuffer()
        data = buf.data
        render_object(DicomAttributes(ct_dataset), buf)
        assert buf.data is data
        assert buf.as_array().shape == (2, 2, 4)
