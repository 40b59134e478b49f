"""Tests for host <-> device image transfer."""

import numpy as np
import numpy.testing as npt
import pytest

from pipeline_runtime.errors import ShapeMismatchError
from pipeline_runtime.transfer import download_image, image_size, upload_image
from tests.conftest import make_image


class TestImageSize:
    def test_width_height_order(self):
        assert image_size(make_image(5, 2)) == (5, 2)

    @pytest.mark.parametrize(
        "image",
        [
            np.zeros((2, 5), dtype=np.uint8),
            np.zeros((2, 5, 4), dtype=np.uint8),
            np.zeros((2, 5, 3), dtype=np.int16),
            b"\x00" * 30,
        ],
    )
    def test_rejects_non_rgb(self, image):
        with pytest.raises(ShapeMismatchError):
            image_size(image)


class TestUpload:
    def test_upload_writes_input(self, registry):
        image = make_image(4, 3)
        upload_image(registry, image)
        npt.assert_array_equal(registry.lookup("input").buffer.to_numpy(), image.reshape(-1))

    def test_upload_non_contiguous(self, registry):
        wide = make_image(8, 3)
        view = wide[:, ::2]
        upload_image(registry, view)
        npt.assert_array_equal(registry.lookup("input").buffer.to_numpy(), np.ascontiguousarray(view).reshape(-1))

    def test_upload_wrong_size(self, registry):
        with pytest.raises(ShapeMismatchError):
            upload_image(registry, make_image(5, 3))


class TestDownload:
    def test_download_shape(self, registry):
        pixels = np.arange(36, dtype=np.uint8)
        registry.lookup("output").buffer.write_from_numpy(pixels)
        image = download_image(registry)
        assert image.shape == (3, 4, 3)
        npt.assert_array_equal(image.reshape(-1), pixels)

    def test_download_follows_frame_size(self, registry):
        registry.set_frame_size((2, 2))
        assert download_image(registry).shape == (2, 2, 3)

    def test_download_size_mismatch(self, registry, backend):
        # an output buffer that does not match the frame is an invariant violation
        registry.lookup("output").buffer = backend.allocate_zeros(10, np.dtype(np.uint8))
        with pytest.raises(ShapeMismatchError):
            download_image(registry)
