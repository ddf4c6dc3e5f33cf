"""Image export for rendered images.

Supported formats:
    - PNG (8-bit, via Pillow)
    - PPM (plain-text P3)

Both take the linear mean radiance the integrator produces and run it
through ``process_image_for_display`` first.

Example:
    >>> from pathtracer.preview.export import save_png
    >>> from pathtracer.core.progressive import ProgressiveRenderer
    >>>
    >>> renderer = ProgressiveRenderer(400, 225)
    >>> renderer.render(100)
    >>> save_png(renderer, "output.png", gamma=2.0)
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

import numpy as np
import numpy.typing as npt
from PIL import Image as PILImage

from pathtracer.preview.tonemap import ToneMapMethod, process_image_for_display

if TYPE_CHECKING:
    from pathtracer.core.progressive import ProgressiveRenderer

logger = logging.getLogger(__name__)


def image_to_uint8(
    image: npt.NDArray[np.float32],
    *,
    tone_map: ToneMapMethod = "none",
    gamma: float = 2.2,
    exposure: float = 1.0,
) -> npt.NDArray[np.uint8]:
    """Convert a linear image to 8-bit.

    Each channel maps to ``int(256 * min(c, 0.999))`` after processing, so
    the full [0, 1] range spreads evenly over 0..255.
    """
    processed = process_image_for_display(image, tone_map=tone_map, gamma=gamma, exposure=exposure)
    return (256.0 * np.minimum(processed, 0.999)).astype(np.uint8)


def save_png_from_array(
    image: npt.NDArray[np.float32],
    filepath: str | Path,
    *,
    tone_map: ToneMapMethod = "none",
    gamma: float = 2.2,
    exposure: float = 1.0,
) -> None:
    """Save a linear (H, W, 3) image as an 8-bit PNG."""
    image_uint8 = image_to_uint8(image, tone_map=tone_map, gamma=gamma, exposure=exposure)
    PILImage.fromarray(image_uint8, mode="RGB").save(filepath)
    logger.info("Saved %dx%d PNG to %s", image.shape[1], image.shape[0], filepath)


def save_png(
    renderer: ProgressiveRenderer,
    filepath: str | Path,
    *,
    tone_map: ToneMapMethod = "none",
    gamma: float = 2.2,
    exposure: float = 1.0,
) -> None:
    """Save the current state of a renderer as a PNG."""
    save_png_from_array(
        renderer.get_image_numpy(), filepath, tone_map=tone_map, gamma=gamma, exposure=exposure
    )


def format_ppm(image_uint8: npt.NDArray[np.uint8]) -> str:
    """Plain-text P3 encoding of an 8-bit (H, W, 3) image, top row first."""
    height, width, _ = image_uint8.shape
    lines = ["P3", f"{width} {height}", "255"]
    for row in image_uint8:
        for r, g, b in row:
            lines.append(f"{r} {g} {b}")
    return "\n".join(lines) + "\n"


def save_ppm_from_array(
    image: npt.NDArray[np.float32],
    filepath: str | Path,
    *,
    tone_map: ToneMapMethod = "none",
    gamma: float = 2.0,
    exposure: float = 1.0,
) -> None:
    """Save a linear (H, W, 3) image as a plain-text PPM.

    The default gamma of 2 matches the square-root encoding conventionally
    paired with this format.
    """
    image_uint8 = image_to_uint8(image, tone_map=tone_map, gamma=gamma, exposure=exposure)
    Path(filepath).write_text(format_ppm(image_uint8))
    logger.info("Saved %dx%d PPM to %s", image.shape[1], image.shape[0], filepath)


def save_ppm(
    renderer: ProgressiveRenderer,
    filepath: str | Path,
    *,
    tone_map: ToneMapMethod = "none",
    gamma: float = 2.0,
    exposure: float = 1.0,
) -> None:
    """Save the current state of a renderer as a plain-text PPM."""
    save_ppm_from_array(
        renderer.get_image_numpy(), filepath, tone_map=tone_map, gamma=gamma, exposure=exposure
    )


def compute_rmse(
    image_a: npt.NDArray[np.floating],
    image_b: npt.NDArray[np.floating],
) -> float:
    """Root mean squared error between two images.

    Raises:
        ValueError: If the shapes differ.
    """
    if image_a.shape != image_b.shape:
        raise ValueError(f"Image shapes must match: {image_a.shape} vs {image_b.shape}")
    diff = image_a.astype(np.float64) - image_b.astype(np.float64)
    return float(np.sqrt(np.mean(diff**2)))
