"""Turning linear radiance into displayable values.

The integrator leaves NaN, negative and unbounded values in its buffers.
This module is where they are cleaned up: ``sanitize`` replaces NaN with 0
and clamps, tone mapping compresses HDR values, and ``apply_gamma`` encodes
for display.

Example:
    >>> import numpy as np
    >>> from pathtracer.preview.tonemap import process_image_for_display
    >>> hdr = np.array([[[4.0, 0.25, np.nan]]], dtype=np.float32)
    >>> process_image_for_display(hdr, tone_map="reinhard", gamma=2.0)
"""

from __future__ import annotations

from typing import Literal

import numpy as np
import numpy.typing as npt

ToneMapMethod = Literal["none", "reinhard", "exposure"]


def sanitize(
    image: npt.NDArray[np.floating],
    upper: float = 1.0,
) -> npt.NDArray[np.float32]:
    """Replace NaN with 0 and clamp every value to ``[0, upper]``.

    Positive infinity clamps to ``upper`` and negative infinity to 0.
    """
    cleaned = np.nan_to_num(np.asarray(image, dtype=np.float32), nan=0.0, posinf=upper, neginf=0.0)
    return np.clip(cleaned, 0.0, upper).astype(np.float32)


def tone_map_reinhard(image: npt.NDArray[np.float32]) -> npt.NDArray[np.float32]:
    """Reinhard operator ``c / (1 + c)``."""
    image = np.maximum(image, 0.0)
    return (image / (1.0 + image)).astype(np.float32)


def tone_map_exposure(
    image: npt.NDArray[np.float32],
    exposure: float = 1.0,
) -> npt.NDArray[np.float32]:
    """Exposure operator ``1 - exp(-c * exposure)``."""
    image = np.maximum(image, 0.0)
    return (1.0 - np.exp(-image * exposure)).astype(np.float32)


def apply_gamma(
    image: npt.NDArray[np.float32],
    gamma: float = 2.2,
) -> npt.NDArray[np.float32]:
    """Gamma-encode an image with values in [0, 1].

    Values are clamped first so negative inputs cannot produce NaN. A gamma
    of 2 is the square-root encoding used for PPM output.

    Raises:
        ValueError: If ``gamma`` is not positive.
    """
    if gamma <= 0.0:
        raise ValueError(f"gamma must be positive, got {gamma}")
    if gamma == 1.0:
        return image
    image = np.clip(image, 0.0, 1.0)
    return np.power(image, 1.0 / gamma).astype(np.float32)


def process_image_for_display(
    image: npt.NDArray[np.float32],
    tone_map: ToneMapMethod = "none",
    gamma: float = 2.2,
    exposure: float = 1.0,
) -> npt.NDArray[np.float32]:
    """Full display pipeline: NaN removal, tone mapping, gamma, clamp.

    Returns:
        A float32 image in [0, 1].

    Raises:
        ValueError: On an unknown tone mapping method.
    """
    result = np.nan_to_num(np.asarray(image, dtype=np.float32), nan=0.0)

    if tone_map == "reinhard":
        result = tone_map_reinhard(result)
    elif tone_map == "exposure":
        result = tone_map_exposure(result, exposure)
    elif tone_map != "none":
        raise ValueError(f"Unknown tone mapping method: {tone_map}")

    result = apply_gamma(sanitize(result), gamma)
    return sanitize(result)
