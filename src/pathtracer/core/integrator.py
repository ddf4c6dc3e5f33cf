"""Monte Carlo path tracing integrator.

``ray_color`` estimates the radiance arriving along a ray. Each bounce:

1. stops with black once the depth budget is spent,
2. intersects the BVH over ``(T_MIN, T_MAX)`` and returns the background on
   a miss,
3. adds the emission of the hit surface,
4. stops when the material absorbs,
5. follows a specular ray, weighting by the attenuation, or
6. draws a diffuse continuation from an equal mixture of light sampling and
   the material's own distribution, weighting by
   ``attenuation * scattering_pdf / mixture_pdf``. A mixture density below
   ``PDF_EPSILON`` ends the path with only the emission collected so far.

The recursion is unrolled into a loop that carries the product of the
weights (the throughput), which gives the same estimate as the recursive
form. A scene without registered lights samples the material distribution
alone.

Pixels are accumulated as a linear running sum and a sample count. Nothing
is clamped or sanitized here; ``pathtracer.preview`` does that when turning
the buffer into an image.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from pathtracer.core.integrator import render_image, setup_render_target
    >>> from pathtracer.scene.cornell_box import create_cornell_box_scene
    >>> from pathtracer.camera.thin_lens import setup_camera
    >>>
    >>> scene, camera, _ = create_cornell_box_scene()
    >>> setup_camera(camera)
    >>> setup_render_target(256, 256)
    >>> render_image(num_samples=16)
"""

import logging

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from pathtracer.camera.thin_lens import get_ray_jittered
from pathtracer.core.pdf import (
    make_lights_pdf,
    make_mixture_pdf,
    mixture_pdf_generate,
    mixture_pdf_value,
    pdf_generate,
    pdf_value,
)
from pathtracer.materials.material import emitted, scatter, scattering_pdf
from pathtracer.scene.intersection import (
    get_primitive_count,
    intersect_scene,
    is_bvh_built,
    num_lights,
)

logger = logging.getLogger(__name__)

vec3 = tm.vec3

# =============================================================================
# Rendering Constants
# =============================================================================

DEFAULT_MAX_DEPTH = 50

# Lower bound on hit distance; keeps a bounce from re-hitting its own surface
T_MIN = 0.001
T_MAX = 1e10

# Mixture densities below this end the path instead of dividing by ~0
PDF_EPSILON = 1e-6

# =============================================================================
# Integrator Configuration
# =============================================================================

_max_depth = ti.field(dtype=ti.i32, shape=())
_background = ti.Vector.field(3, dtype=ti.f32, shape=())
_sky_enabled = ti.field(dtype=ti.i32, shape=())
_sky_bottom = ti.Vector.field(3, dtype=ti.f32, shape=())
_sky_top = ti.Vector.field(3, dtype=ti.f32, shape=())


def set_max_depth(depth: int) -> None:
    """Set the maximum number of path segments.

    Raises:
        ValueError: If ``depth`` is negative.
    """
    if depth < 0:
        raise ValueError(f"max_depth must be non-negative, got {depth}")
    _max_depth[None] = depth


def get_max_depth() -> int:
    """Current maximum number of path segments per sample."""
    return int(_max_depth[None])


def set_background(color: tuple[float, float, float]) -> None:
    """Use a constant background color and disable the sky gradient."""
    _background[None] = [color[0], color[1], color[2]]
    _sky_enabled[None] = 0


def set_sky_gradient(
    enabled: bool = True,
    bottom: tuple[float, float, float] = (1.0, 1.0, 1.0),
    top: tuple[float, float, float] = (0.5, 0.7, 1.0),
) -> None:
    """Blend the background from ``bottom`` to ``top`` by direction height.

    A ray with unit direction d escapes to
    ``(1 - t) * bottom + t * top`` with ``t = 0.5 * (d.y + 1)``.
    """
    _sky_enabled[None] = 1 if enabled else 0
    _sky_bottom[None] = [bottom[0], bottom[1], bottom[2]]
    _sky_top[None] = [top[0], top[1], top[2]]


def reset_integrator_settings() -> None:
    """Restore the default depth and a black constant background."""
    set_max_depth(DEFAULT_MAX_DEPTH)
    set_background((0.0, 0.0, 0.0))
    set_sky_gradient(False)


reset_integrator_settings()


@ti.func
def background_color(direction: vec3) -> vec3:
    """Radiance of a ray that leaves the scene."""
    result = _background[None]
    if _sky_enabled[None] == 1:
        t = 0.5 * (tm.normalize(direction).y + 1.0)
        result = (1.0 - t) * _sky_bottom[None] + t * _sky_top[None]
    return result


# =============================================================================
# Render Target
# =============================================================================

# Preallocated so a resize never recompiles kernels
MAX_IMAGE_WIDTH = 2048
MAX_IMAGE_HEIGHT = 2048

_image_width = ti.field(dtype=ti.i32, shape=())
_image_height = ti.field(dtype=ti.i32, shape=())
_color_sum = ti.Vector.field(3, dtype=ti.f32, shape=(MAX_IMAGE_WIDTH, MAX_IMAGE_HEIGHT))
_sample_count = ti.field(dtype=ti.i32, shape=(MAX_IMAGE_WIDTH, MAX_IMAGE_HEIGHT))
_render_target_initialized = ti.field(dtype=ti.i32, shape=())


def setup_render_target(width: int, height: int) -> None:
    """Set the active image size and clear the accumulation buffers.

    Raises:
        ValueError: If a dimension is not positive or exceeds the maximum.
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"Image dimensions must be positive, got {width}x{height}")
    if width > MAX_IMAGE_WIDTH or height > MAX_IMAGE_HEIGHT:
        raise ValueError(
            f"Image dimensions ({width}x{height}) exceed maximum supported "
            f"({MAX_IMAGE_WIDTH}x{MAX_IMAGE_HEIGHT})"
        )
    _image_width[None] = width
    _image_height[None] = height
    _render_target_initialized[None] = 1
    clear_render_target()


def clear_render_target() -> None:
    """Zero the accumulation buffers and the sample count."""
    _color_sum.fill(0.0)
    _sample_count.fill(0)


def get_image_dimensions() -> tuple[int, int]:
    """(width, height) of the render target."""
    return int(_image_width[None]), int(_image_height[None])


def _check_render_target_initialized() -> None:
    if _render_target_initialized[None] == 0:
        raise RuntimeError("Render target not set up. Call setup_render_target() first.")


def _check_scene_ready() -> None:
    if get_primitive_count() > 0 and not is_bvh_built():
        raise RuntimeError("Scene BVH is missing or stale. Call build_scene_bvh() first.")


# =============================================================================
# Path Tracing Core
# =============================================================================


@ti.func
def ray_color(ray_origin: vec3, ray_direction: vec3, max_depth: ti.i32) -> vec3:
    """Radiance estimate along a ray using at most ``max_depth`` segments."""
    radiance = vec3(0.0, 0.0, 0.0)
    throughput = vec3(1.0, 1.0, 1.0)
    origin = ray_origin
    direction = ray_direction

    # Taichi funcs cannot break out of loops
    active = 1

    for _ in range(max_depth):
        if active == 1:
            rec = intersect_scene(origin, direction, T_MIN, T_MAX)

            if rec.hit == 0:
                radiance += throughput * background_color(direction)
                active = 0
            else:
                radiance += throughput * emitted(rec.material_id, rec.u, rec.v, rec.point)
                srec = scatter(direction, rec)

                if srec.did_scatter == 0:
                    active = 0
                elif srec.is_specular == 1:
                    throughput *= srec.attenuation
                    origin = srec.specular_ray.origin
                    direction = srec.specular_ray.direction
                else:
                    scattered = vec3(0.0, 0.0, 0.0)
                    density = 0.0
                    if num_lights[None] > 0:
                        mixture = make_mixture_pdf(make_lights_pdf(rec.point), srec.pdf)
                        scattered = mixture_pdf_generate(mixture)
                        density = mixture_pdf_value(mixture, scattered)
                    else:
                        scattered = pdf_generate(srec.pdf)
                        density = pdf_value(srec.pdf, scattered)

                    if density < PDF_EPSILON:
                        active = 0
                    else:
                        weight = scattering_pdf(rec.material_id, rec.normal, scattered) / density
                        throughput *= srec.attenuation * weight
                        origin = rec.point
                        direction = tm.normalize(scattered)

    return radiance


@ti.kernel
def _render_pass(width: ti.i32, height: ti.i32, max_depth: ti.i32):
    """Add one sample to every pixel.

    The outer loop over rows runs in parallel; each worker thread draws from
    its own ti.random stream.
    """
    for j in range(height):
        for i in range(width):
            ray = get_ray_jittered(i, j, width, height)
            _color_sum[i, j] += ray_color(ray.origin, ray.direction, max_depth)
            _sample_count[i, j] += 1


_single_result = ti.Vector.field(3, dtype=ti.f32, shape=())


@ti.kernel
def _render_single_pixel(pixel_i: ti.i32, pixel_j: ti.i32, width: ti.i32, height: ti.i32, max_depth: ti.i32):
    # One-iteration loop keeps the path loop below it serial
    for _ in range(1):
        ray = get_ray_jittered(pixel_i, pixel_j, width, height)
        _single_result[None] = ray_color(ray.origin, ray.direction, max_depth)


@ti.kernel
def _trace_single_ray(origin: vec3, direction: vec3, max_depth: ti.i32):
    for _ in range(1):
        _single_result[None] = ray_color(origin, tm.normalize(direction), max_depth)


# =============================================================================
# Public Rendering API
# =============================================================================


def render_sample(pixel_i: int, pixel_j: int) -> tuple[float, float, float]:
    """One radiance sample through pixel (i, j), not accumulated.

    Raises:
        RuntimeError: If the render target or the scene BVH is not set up.
    """
    _check_render_target_initialized()
    _check_scene_ready()
    width, height = get_image_dimensions()
    _render_single_pixel(pixel_i, pixel_j, width, height, get_max_depth())
    color = _single_result[None]
    return (float(color[0]), float(color[1]), float(color[2]))


def trace_ray(
    origin: tuple[float, float, float],
    direction: tuple[float, float, float],
    depth: int | None = None,
) -> tuple[float, float, float]:
    """One radiance sample along an arbitrary ray.

    Args:
        origin: Ray origin.
        direction: Ray direction; normalized before tracing.
        depth: Segment budget, defaulting to the configured max depth.

    Raises:
        RuntimeError: If the scene BVH is missing or stale.
    """
    _check_scene_ready()
    if depth is None:
        depth = get_max_depth()
    _trace_single_ray(vec3(*origin), vec3(*direction), depth)
    color = _single_result[None]
    return (float(color[0]), float(color[1]), float(color[2]))


def render_image(num_samples: int = 1) -> None:
    """Accumulate ``num_samples`` more samples into every pixel.

    Raises:
        RuntimeError: If the render target or the scene BVH is not set up.
    """
    _check_render_target_initialized()
    _check_scene_ready()
    width, height = get_image_dimensions()
    depth = get_max_depth()
    for _ in range(num_samples):
        _render_pass(width, height, depth)
    logger.debug("Rendered %d samples at %dx%d", num_samples, width, height)


def get_total_samples() -> int:
    """Samples accumulated per pixel (read from pixel (0, 0))."""
    _check_render_target_initialized()
    return int(_sample_count[0, 0])


def get_accumulated_image() -> tuple[npt.NDArray[np.float32], npt.NDArray[np.int32]]:
    """Raw accumulation buffers in image layout.

    Returns:
        ``(color_sum, sample_count)`` with shapes (height, width, 3) and
        (height, width). Row 0 is the top of the image.

    Raises:
        RuntimeError: If the render target has not been set up.
    """
    _check_render_target_initialized()
    width, height = get_image_dimensions()
    color_sum = _color_sum.to_numpy()[:width, :height, :]
    counts = _sample_count.to_numpy()[:width, :height]
    # Buffers are indexed (x, y) from the bottom-left
    color_sum = np.flipud(np.transpose(color_sum, (1, 0, 2)))
    counts = np.flipud(counts.T)
    return color_sum.astype(np.float32), counts.astype(np.int32)


def get_image_numpy() -> npt.NDArray[np.float32]:
    """Per-pixel mean radiance, linear and unclamped.

    Pixels with no samples are 0. NaN or infinite samples propagate into
    the mean unchanged.
    """
    color_sum, counts = get_accumulated_image()
    safe = np.maximum(counts, 1)[..., np.newaxis].astype(np.float32)
    image = np.where(counts[..., np.newaxis] > 0, color_sum / safe, 0.0)
    return image.astype(np.float32)
