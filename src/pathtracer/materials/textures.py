"""Surface textures looked up by (u, v, point).

Two kinds are supported: a solid color and a checker pattern over the
surface (u, v) coordinates. Textures are stored in a registry and referenced
by id from Lambertian and diffuse-light materials.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from pathtracer.materials.textures import add_checker_texture, add_solid_texture
    >>> red = add_solid_texture((0.8, 0.1, 0.1))
    >>> floor = add_checker_texture((0.2, 0.3, 0.1), (0.9, 0.9, 0.9), scale=10.0)
"""

from enum import IntEnum

import taichi as ti
import taichi.math as tm

vec3 = tm.vec3


class TextureType(IntEnum):
    SOLID = 0
    CHECKER = 1


MAX_TEXTURES = 1024

texture_types = ti.field(dtype=ti.i32, shape=MAX_TEXTURES)
texture_color_even = ti.Vector.field(3, dtype=ti.f32, shape=MAX_TEXTURES)
texture_color_odd = ti.Vector.field(3, dtype=ti.f32, shape=MAX_TEXTURES)
texture_scales = ti.field(dtype=ti.f32, shape=MAX_TEXTURES)
num_textures = ti.field(dtype=ti.i32, shape=())


def clear_textures() -> None:
    """Reset the texture registry."""
    num_textures[None] = 0


def _add_texture(tex_type: TextureType, even, odd, scale: float) -> int:
    idx = num_textures[None]
    if idx >= MAX_TEXTURES:
        raise RuntimeError(f"Maximum number of textures ({MAX_TEXTURES}) exceeded")
    texture_types[idx] = int(tex_type)
    texture_color_even[idx] = vec3(even[0], even[1], even[2])
    texture_color_odd[idx] = vec3(odd[0], odd[1], odd[2])
    texture_scales[idx] = scale
    num_textures[None] = idx + 1
    return idx


def add_solid_texture(color: tuple[float, float, float]) -> int:
    """Register a constant-color texture and return its id.

    Components are not range-checked here; emission textures legitimately
    exceed 1.
    """
    return _add_texture(TextureType.SOLID, color, color, 1.0)


def add_checker_texture(
    even: tuple[float, float, float],
    odd: tuple[float, float, float],
    scale: float = 10.0,
) -> int:
    """Register a checker texture alternating ``even`` and ``odd`` colors.

    Args:
        even: Color of cells where ``floor(u s) + floor(v s)`` is even.
        odd: Color of the remaining cells.
        scale: Number of cells per unit of (u, v).

    Raises:
        ValueError: If ``scale`` is not positive.
    """
    if scale <= 0.0:
        raise ValueError(f"Checker scale must be positive, got {scale}")
    return _add_texture(TextureType.CHECKER, even, odd, scale)


def get_texture_count() -> int:
    """Number of textures in the registry."""
    return int(num_textures[None])


@ti.func
def texture_value(texture_id: ti.i32, u: ti.f32, v: ti.f32, point: vec3) -> vec3:
    """Color of a texture at surface coordinates (u, v)."""
    result = texture_color_even[texture_id]
    if texture_types[texture_id] == int(TextureType.CHECKER):
        scale = texture_scales[texture_id]
        cell = ti.cast(ti.floor(u * scale), ti.i32) + ti.cast(ti.floor(v * scale), ti.i32)
        if cell % 2 != 0:
            result = texture_color_odd[texture_id]
    return result
