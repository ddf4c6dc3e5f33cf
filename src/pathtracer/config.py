"""Render configuration.

``RenderConfig`` collects the settings a render needs in one validated
dataclass. ``init_taichi`` must run before any module declaring Taichi
fields is imported; ``apply`` pushes the integrator settings once those
modules are loaded.

Example:
    >>> from pathtracer.config import RenderConfig, apply, init_taichi
    >>> config = RenderConfig.from_dict({"width": 320, "height": 180, "seed": 3})
    >>> init_taichi(config)
    >>> apply(config)
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, fields
from typing import Any, Literal

import taichi as ti

logger = logging.getLogger(__name__)

Arch = Literal["cpu", "gpu", "cuda", "vulkan", "metal"]

_ARCHES = {
    "cpu": ti.cpu,
    "gpu": ti.gpu,
    "cuda": ti.cuda,
    "vulkan": ti.vulkan,
    "metal": ti.metal,
}


@dataclass
class RenderConfig:
    """Settings for one render.

    Attributes:
        width: Image width in pixels.
        height: Image height in pixels.
        samples_per_pixel: Total samples accumulated per pixel.
        batch_size: Samples rendered between progress reports.
        max_depth: Maximum path segments per sample.
        background: Constant background color, used when ``sky_gradient`` is
            off.
        sky_gradient: Blend the background from white to light blue by ray
            height instead of using ``background``.
        seed: Seed for Taichi's random generators and scene construction.
        arch: Preferred Taichi backend; falls back to CPU.
    """

    width: int = 384
    height: int = 216
    samples_per_pixel: int = 100
    batch_size: int = 10
    max_depth: int = 50
    background: tuple[float, float, float] = (0.0, 0.0, 0.0)
    sky_gradient: bool = False
    seed: int = 0
    arch: Arch = "gpu"

    @property
    def aspect_ratio(self) -> float:
        """Image width divided by height."""
        return self.width / self.height

    def validate(self) -> None:
        """Raise ``ValueError`` if any setting is out of range."""
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Image dimensions must be positive, got {self.width}x{self.height}")
        if self.samples_per_pixel <= 0:
            raise ValueError(f"samples_per_pixel must be positive, got {self.samples_per_pixel}")
        if self.batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {self.batch_size}")
        if self.max_depth < 0:
            raise ValueError(f"max_depth must be non-negative, got {self.max_depth}")
        if len(self.background) != 3 or any(c < 0.0 for c in self.background):
            raise ValueError(f"background must be a non-negative RGB triple, got {self.background}")
        if self.arch not in _ARCHES:
            raise ValueError(f"Unknown arch {self.arch!r}; expected one of {sorted(_ARCHES)}")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RenderConfig:
        """Build a validated config.

        Raises:
            ValueError: On an unknown key or an invalid setting.
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown config keys: {unknown}")
        kwargs = dict(data)
        if "background" in kwargs:
            kwargs["background"] = tuple(float(c) for c in kwargs["background"])
        config = cls(**kwargs)
        config.validate()
        return config

    def to_dict(self) -> dict[str, Any]:
        """Plain-data form accepted by ``from_dict``."""
        data = asdict(self)
        data["background"] = list(self.background)
        return data


def init_taichi(config: RenderConfig | None = None) -> str:
    """Initialize Taichi for ``config``.

    Tries the configured backend first and falls back to CPU when it is not
    available.

    Returns:
        The name of the backend in use.
    """
    if config is None:
        config = RenderConfig()
    config.validate()

    if config.arch != "cpu":
        try:
            ti.init(arch=_ARCHES[config.arch], random_seed=config.seed)
            logger.info("Using %s backend", config.arch)
            return config.arch
        except RuntimeError:
            logger.warning("Backend %s unavailable, falling back to CPU", config.arch)

    ti.init(arch=ti.cpu, random_seed=config.seed)
    logger.info("Using cpu backend")
    return "cpu"


def apply(config: RenderConfig) -> None:
    """Push depth and background settings to the integrator."""
    from pathtracer.core.integrator import set_background, set_max_depth, set_sky_gradient

    config.validate()
    set_max_depth(config.max_depth)
    set_background(config.background)
    if config.sky_gradient:
        set_sky_gradient(True)
