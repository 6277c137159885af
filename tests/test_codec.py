"""Tests for the legacy descriptor codec."""

import numpy as np
import pytest

from facebank.features.codec import DescriptorCodec, zscore
from facebank.types import BoundingBox, DescriptorKind, Landmarks


class TestZScore:
    def test_normalizes(self):
        out = zscore(np.array([1.0, 2.0, 3.0, 4.0]))
        assert out.mean() == pytest.approx(0.0, abs=1e-6)
        assert out.std() == pytest.approx(1.0, abs=1e-6)

    def test_constant_left_unnormalized(self):
        values = np.full(10, 3.0)
        np.testing.assert_array_equal(zscore(values), values)

    def test_returns_new_array(self):
        values = np.array([1.0, 5.0, 9.0])
        zscore(values)
        np.testing.assert_array_equal(values, [1.0, 5.0, 9.0])


class TestDescriptorCodec:
    def test_legacy_descriptor(self, face_image, make_landmarks):
        out = DescriptorCodec().extract(face_image, make_landmarks(8))
        assert out.descriptor.kind == DescriptorKind.LEGACY
        assert len(out.descriptor) == 420
        assert out.fallbacks == []
        assert out.descriptor.values.mean() == pytest.approx(0.0, abs=1e-4)
        assert out.descriptor.values.std() == pytest.approx(1.0, abs=1e-4)

    def test_deterministic(self, face_image, make_landmarks):
        codec = DescriptorCodec()
        a = codec.describe(face_image, make_landmarks(8))
        b = codec.describe(face_image.copy(), make_landmarks(8))
        np.testing.assert_array_equal(a.values, b.values)

    def test_different_faces_differ(self, face_image, other_face_image, make_landmarks):
        codec = DescriptorCodec()
        a = codec.describe(face_image, make_landmarks(8))
        b = codec.describe(other_face_image, make_landmarks(8))
        assert not np.array_equal(a.values, b.values)

    def test_missing_image_uses_zero_blocks(self):
        out = DescriptorCodec().extract(None, None)
        assert out.fallbacks == ["lbp", "hog"]
        assert out.degraded
        assert len(out.descriptor) == 420
        assert not out.descriptor.values.any()

    def test_degenerate_bbox_records_geometric_fallback(self, face_image, make_landmarks):
        lm = make_landmarks(8, bbox=BoundingBox(0, 0, 0, 0))
        out = DescriptorCodec().extract(face_image, lm)
        assert out.fallbacks == ["geometric"]
        assert len(out.descriptor) == 420

    def test_without_landmarks(self, face_image):
        out = DescriptorCodec().extract(face_image, None)
        assert out.fallbacks == []
        assert len(out.descriptor) == 420

    def test_input_not_modified(self, face_image, make_landmarks):
        before = face_image.copy()
        DescriptorCodec().extract(face_image, make_landmarks(5))
        np.testing.assert_array_equal(face_image, before)
