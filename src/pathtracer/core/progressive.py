"""Progressive renderer for iterative sample accumulation.

Wraps the integrator's render target with batch rendering, progress
reporting (callback or generator), reset and resize.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from pathtracer.core.progressive import ProgressiveRenderer
    >>> from pathtracer.scene.random_spheres import create_random_spheres_scene
    >>> from pathtracer.camera.thin_lens import setup_camera
    >>>
    >>> scene, camera = create_random_spheres_scene(seed=7)
    >>> setup_camera(camera)
    >>> renderer = ProgressiveRenderer(400, 225)
    >>> renderer.render(100, batch_size=10)
    >>> image = renderer.get_image_numpy()
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Generator
from pathlib import Path

import numpy as np
import numpy.typing as npt

from pathtracer.core.integrator import (
    clear_render_target,
    get_accumulated_image,
    get_image_numpy,
    get_total_samples,
    render_image,
    setup_render_target,
)
from pathtracer.preview.tonemap import ToneMapMethod

logger = logging.getLogger(__name__)

# Receives (current_samples, target_samples)
ProgressCallback = Callable[[int, int], None]


class ProgressiveRenderer:
    """Accumulates samples into the integrator's render target over time.

    The render target is a set of module-level Taichi fields, so only one
    renderer is meaningfully active at a time.
    """

    def __init__(self, width: int, height: int) -> None:
        """Set up a render target of the given size.

        Raises:
            ValueError: If a dimension is invalid.
        """
        self._width = width
        self._height = height
        setup_render_target(width, height)

    @property
    def width(self) -> int:
        """Image width in pixels."""
        return self._width

    @property
    def height(self) -> int:
        """Image height in pixels."""
        return self._height

    @property
    def sample_count(self) -> int:
        """Samples accumulated per pixel so far."""
        return get_total_samples()

    def reset(self) -> None:
        """Discard accumulated samples, keeping the size."""
        clear_render_target()

    def resize(self, width: int, height: int) -> None:
        """Change the image size; accumulated samples are discarded."""
        self._width = width
        self._height = height
        setup_render_target(width, height)

    def render(
        self,
        num_samples: int = 1,
        batch_size: int = 1,
        callback: ProgressCallback | None = None,
    ) -> None:
        """Add ``num_samples`` samples per pixel.

        Args:
            num_samples: Samples to add; non-positive values do nothing.
            batch_size: Samples rendered between callbacks.
            callback: Called after each batch with
                (current_total_samples, target_total_samples).

        Raises:
            ValueError: If ``batch_size`` is not positive.
        """
        for current, target in self.render_progressive(num_samples, batch_size):
            if callback is not None:
                callback(current, target)

    def render_progressive(
        self,
        num_samples: int = 1,
        batch_size: int = 1,
    ) -> Generator[tuple[int, int], None, None]:
        """Generator form of ``render`` yielding progress after each batch.

        Yields:
            Tuple of (current_total_samples, target_total_samples).
        """
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        if num_samples <= 0:
            return

        target_samples = self.sample_count + num_samples
        remaining = num_samples
        while remaining > 0:
            batch = min(batch_size, remaining)
            render_image(batch)
            remaining -= batch
            logger.debug("Accumulated %d/%d samples", self.sample_count, target_samples)
            yield (self.sample_count, target_samples)

    def get_accumulated(self) -> tuple[npt.NDArray[np.float32], npt.NDArray[np.int32]]:
        """Raw (color_sum, sample_count) buffers in image layout."""
        return get_accumulated_image()

    def get_image_numpy(self) -> npt.NDArray[np.float32]:
        """Linear mean radiance, shape (height, width, 3), unclamped."""
        return get_image_numpy()

    def get_image_uint8(
        self,
        gamma: float = 2.2,
        tone_map: ToneMapMethod = "none",
    ) -> npt.NDArray[np.uint8]:
        """Averaged image tone mapped and gamma encoded to 8 bits."""
        from pathtracer.preview.export import image_to_uint8

        return image_to_uint8(self.get_image_numpy(), tone_map=tone_map, gamma=gamma)

    def save_image(self, filepath: str | Path, gamma: float | None = None) -> None:
        """Save to PNG, or to plain-text PPM for a ``.ppm`` path.

        Args:
            filepath: Output path; the suffix picks the format.
            gamma: Encoding gamma. ``None`` keeps the writer's default, 2.2
                for PNG and 2.0 for PPM.
        """
        from pathtracer.preview.export import save_png, save_ppm

        save = save_ppm if Path(filepath).suffix.lower() == ".ppm" else save_png
        if gamma is None:
            save(self, filepath)
        else:
            save(self, filepath, gamma=gamma)

    def __repr__(self) -> str:
        return (
            f"ProgressiveRenderer(width={self.width}, height={self.height}, "
            f"samples={self.sample_count})"
        )
