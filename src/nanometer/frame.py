"""
Luminance Frame
===============

Read-only view over one captured single-channel luminance plane.

A capture pipeline typically hands over the Y plane of a bi-planar YCbCr
buffer: `width` x `height` bytes, where each row starts `row_stride` bytes
after the previous one (stride >= width, padding at the row end is ignored).

Usage:
    frame = LumaFrame(width, height, row_stride, y_plane_bytes)
    frame = LumaFrame.from_array(gray)          # 2-D uint8 array
    frame = LumaFrame.from_bgr(cv2_image)       # OpenCV BGR/BGRA image
    frame = LumaFrame.load("scene.jpg")         # JPEG/PNG/TIFF or camera RAW
"""

import cv2
import numpy as np
import rawpy
from pathlib import Path
from typing import Union

# Camera RAW formats decoded through LibRaw instead of OpenCV
RAW_EXTENSIONS = {".arw", ".cr2", ".cr3", ".nef", ".dng", ".raf", ".orf", ".rw2", ".pef"}


class LumaFrame:
    """
    One luminance plane, owned by the caller for the duration of a sampling call.

    The frame never copies a contiguous buffer; `plane` is a strided,
    non-writeable (height, width) numpy view onto it.
    """

    def __init__(self, width: int, height: int, row_stride: int,
                 data: Union[bytes, bytearray, memoryview, np.ndarray]):
        if width < 0 or height < 0:
            raise ValueError(f"Invalid frame size: {width}x{height}")
        if row_stride < width:
            raise ValueError(f"Row stride {row_stride} is smaller than width {width}")

        if isinstance(data, np.ndarray):
            buf = np.ascontiguousarray(data, dtype=np.uint8).ravel()
        else:
            buf = np.frombuffer(data, dtype=np.uint8)

        needed = (height - 1) * row_stride + width if width and height else 0
        if buf.size < needed:
            raise ValueError(
                f"Buffer holds {buf.size} bytes, {width}x{height} at stride {row_stride} needs {needed}"
            )

        self.width = width
        self.height = height
        self.row_stride = row_stride

        if needed:
            self._plane = np.lib.stride_tricks.as_strided(
                buf, shape=(height, width), strides=(row_stride, 1), writeable=False
            )
        else:
            self._plane = np.zeros((height, width), dtype=np.uint8)

    @property
    def plane(self) -> np.ndarray:
        """(height, width) uint8 view of the visible pixels."""
        return self._plane

    @property
    def is_empty(self) -> bool:
        return self.width == 0 or self.height == 0

    def pixel(self, x: int, y: int) -> int:
        """Byte value (0..255) at column x, row y."""
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f"Pixel ({x}, {y}) outside {self.width}x{self.height} frame")
        return int(self._plane[y, x])

    def __repr__(self) -> str:
        return f"LumaFrame({self.width}x{self.height}, stride={self.row_stride})"

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def from_array(cls, gray: np.ndarray) -> 'LumaFrame':
        """Wrap a 2-D luminance array (values are cast to uint8)."""
        if gray.ndim != 2:
            raise ValueError(f"Expected a 2-D luminance array, got shape {gray.shape}")
        plane = np.ascontiguousarray(gray, dtype=np.uint8)
        h, w = plane.shape
        return cls(w, h, w, plane)

    @classmethod
    def from_bgr(cls, image: np.ndarray) -> 'LumaFrame':
        """Convert an OpenCV image (gray, BGR or BGRA) to its luma plane."""
        if image.ndim == 2:
            return cls.from_array(image)
        channels = image.shape[2]
        if channels == 1:
            return cls.from_array(image[:, :, 0])
        if channels == 4:
            gray = cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
        else:
            gray = cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
        return cls.from_array(gray)

    @classmethod
    def load(cls, path: Union[str, Path]) -> 'LumaFrame':
        """Load an image file; camera RAW files are demosaiced with LibRaw first."""
        path = Path(path)
        if path.suffix.lower() in RAW_EXTENSIONS:
            try:
                with rawpy.imread(str(path)) as raw:
                    rgb = raw.postprocess(
                        use_camera_wb=True,
                        half_size=True,
                        no_auto_bright=True,
                        output_bps=8
                    )
            except (rawpy.LibRawError, OSError) as exc:
                raise ValueError(f"Failed to load image: {path}") from exc
            return cls.from_array(cv2.cvtColor(rgb, cv2.COLOR_RGB2GRAY))

        gray = cv2.imread(str(path), cv2.IMREAD_GRAYSCALE)
        if gray is None:
            raise ValueError(f"Failed to load image: {path}")
        return cls.from_array(gray)
