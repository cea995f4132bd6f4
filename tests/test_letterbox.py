import unittest

import numpy as np

from yolo_detector.errors import InvalidImageError
from yolo_detector.letterbox import letterbox


class TestLetterbox(unittest.TestCase):
    def test_landscape_640x480_pads_top_and_bottom(self) -> None:
        img = np.full((480, 640, 3), 7, dtype=np.uint8)
        lb = letterbox(img, 640, pad_color=114)
        self.assertEqual(lb.ratio, 1.0)
        self.assertEqual(lb.pad_x, 0.0)
        self.assertEqual(lb.pad_y, 80.0)
        self.assertEqual(lb.orig_size, (640, 480))
        self.assertEqual(lb.image.shape, (640, 640, 3))
        self.assertTrue(np.all(lb.image[:80] == 114))
        self.assertTrue(np.all(lb.image[560:] == 114))
        self.assertTrue(np.all(lb.image[80:560] == 7))

    def test_upscales_small_image(self) -> None:
        img = np.zeros((100, 200, 3), dtype=np.uint8)
        lb = letterbox(img, 640)
        self.assertAlmostEqual(lb.ratio, 3.2)
        self.assertEqual(lb.pad_x, 0.0)
        self.assertEqual(lb.pad_y, 160.0)
        self.assertEqual(lb.image.shape, (640, 640, 3))
        self.assertTrue(np.all(lb.image[160:480] == 0))

    def test_downscales_portrait_image(self) -> None:
        img = np.zeros((1280, 640, 3), dtype=np.uint8)
        lb = letterbox(img, 320)
        self.assertAlmostEqual(lb.ratio, 0.25)
        self.assertEqual(lb.pad_x, 80.0)
        self.assertEqual(lb.pad_y, 0.0)
        self.assertEqual(lb.image.shape, (320, 320, 3))

    def test_odd_margin_keeps_exact_fractional_pad(self) -> None:
        img = np.zeros((479, 640, 3), dtype=np.uint8)
        lb = letterbox(img, 640)
        self.assertEqual(lb.pad_y, 80.5)
        self.assertEqual(lb.image.shape, (640, 640, 3))
        self.assertTrue(np.all(lb.image[:80] == 114))
        self.assertTrue(np.all(lb.image[80:559] == 0))
        self.assertTrue(np.all(lb.image[559:] == 114))

    def test_placement_is_within_half_pixel_of_pad(self) -> None:
        for (w, h) in [(640, 479), (479, 640), (333, 101), (1000, 1)]:
            img = np.zeros((h, w, 3), dtype=np.uint8)
            lb = letterbox(img, 640, pad_color=114)
            rows = np.where(np.any(lb.image[:, :, 0] != 114, axis=1))[0]
            cols = np.where(np.any(lb.image[:, :, 0] != 114, axis=0))[0]
            self.assertLessEqual(abs(rows[0] - lb.pad_y), 0.5, msg=f"{w}x{h}")
            self.assertLessEqual(abs(cols[0] - lb.pad_x), 0.5, msg=f"{w}x{h}")

    def test_pad_color_is_uniform_gray(self) -> None:
        img = np.full((10, 20, 3), 255, dtype=np.uint8)
        lb = letterbox(img, 40, pad_color=0)
        self.assertTrue(np.all(lb.image[:10] == 0))
        self.assertTrue(np.all(lb.image[10:30] == 255))

    def test_rgba_drops_alpha(self) -> None:
        img = np.zeros((32, 32, 4), dtype=np.uint8)
        img[..., 3] = 255
        lb = letterbox(img, 32)
        self.assertEqual(lb.image.shape, (32, 32, 3))
        self.assertTrue(np.all(lb.image == 0))

    def test_zero_sized_image_is_rejected(self) -> None:
        for shape in [(0, 10, 3), (10, 0, 3)]:
            with self.assertRaises(InvalidImageError):
                letterbox(np.zeros(shape, dtype=np.uint8), 640)

    def test_invalid_image_is_a_value_error(self) -> None:
        with self.assertRaises(ValueError):
            letterbox(np.zeros((10, 10), dtype=np.uint8), 640)


if __name__ == "__main__":
    unittest.main()
