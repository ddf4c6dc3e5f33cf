"""Direction sampling distributions for importance sampling.

Each distribution offers a matched pair of operations: ``pdf_generate``
draws a direction and ``pdf_value`` returns the solid-angle density of
drawing any given direction. The pair must agree for the Monte Carlo
estimate to stay unbiased.

Kinds:
    COSINE: ``cos(theta) / pi`` about a surface normal; the natural
        distribution of a Lambertian surface.
    GEOMETRY: directions toward a target primitive, or toward the whole
        light list when the target is ``ALL_LIGHTS``. In the latter case a
        light is picked uniformly and the density is the mean over lights.

``MixturePDF`` blends two distributions with fixed equal weights, which is
how light sampling and material sampling are combined.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from pathtracer.core.pdf import make_cosine_pdf, pdf_generate, pdf_value, vec3
    >>> @ti.kernel
    ... def density() -> ti.f32:
    ...     pdf = make_cosine_pdf(vec3(0.0, 1.0, 0.0))
    ...     return pdf_value(pdf, pdf_generate(pdf))
"""

from enum import IntEnum

import taichi as ti
import taichi.math as tm

from pathtracer.core.ray import build_onb_from_normal, local_to_world, random_cosine_direction
from pathtracer.scene.intersection import (
    lights_pdf_value,
    lights_random,
    primitive_pdf_value,
    primitive_random,
)

vec3 = tm.vec3

# Geometry target meaning "every registered light"
ALL_LIGHTS = -1


class PDFKind(IntEnum):
    COSINE = 0
    GEOMETRY = 1


@ti.dataclass
class PDF:
    """A direction distribution.

    Attributes:
        kind: A PDFKind value.
        axis: Surface normal the COSINE distribution is built around.
        origin: Point the GEOMETRY distribution samples from.
        target: Primitive id sampled by GEOMETRY, or ALL_LIGHTS.
    """

    kind: ti.i32
    axis: vec3
    origin: vec3
    target: ti.i32


@ti.dataclass
class MixturePDF:
    """Equal-weight mixture of two distributions."""

    p0: PDF
    p1: PDF


@ti.func
def make_cosine_pdf(normal: vec3) -> PDF:
    """Cosine-weighted hemisphere PDF about ``normal``."""
    return PDF(
        kind=int(PDFKind.COSINE),
        axis=tm.normalize(normal),
        origin=vec3(0.0, 0.0, 0.0),
        target=0,
    )


@ti.func
def make_geometry_pdf(origin: vec3, target: ti.i32) -> PDF:
    """PDF sampling directions from ``origin`` toward one primitive."""
    return PDF(kind=int(PDFKind.GEOMETRY), axis=vec3(0.0, 0.0, 1.0), origin=origin, target=target)


@ti.func
def make_lights_pdf(origin: vec3) -> PDF:
    """PDF sampling directions from ``origin`` toward the registered lights."""
    return make_geometry_pdf(origin, ALL_LIGHTS)


@ti.func
def make_mixture_pdf(p0: PDF, p1: PDF) -> MixturePDF:
    """Even mixture of two PDFs."""
    return MixturePDF(p0=p0, p1=p1)


@ti.func
def cosine_pdf_value(axis: vec3, direction: vec3) -> ti.f32:
    """``cos(theta) / pi`` for directions above the surface, 0 otherwise."""
    cosine = tm.dot(tm.normalize(direction), axis)
    result = 0.0
    if cosine > 0.0:
        result = cosine / tm.pi
    return result


@ti.func
def pdf_value(pdf: PDF, direction: vec3) -> ti.f32:
    """Solid-angle density of ``pdf`` at ``direction``."""
    result = 0.0
    if pdf.kind == int(PDFKind.COSINE):
        result = cosine_pdf_value(pdf.axis, direction)
    elif pdf.target == ALL_LIGHTS:
        result = lights_pdf_value(pdf.origin, direction)
    else:
        result = primitive_pdf_value(pdf.target, pdf.origin, direction)
    return result


@ti.func
def pdf_generate(pdf: PDF) -> vec3:
    """Draw a direction from ``pdf``."""
    result = vec3(0.0, 0.0, 0.0)
    if pdf.kind == int(PDFKind.COSINE):
        tangent, bitangent, w = build_onb_from_normal(pdf.axis)
        result = local_to_world(random_cosine_direction(), tangent, bitangent, w)
    elif pdf.target == ALL_LIGHTS:
        result = lights_random(pdf.origin)
    else:
        result = primitive_random(pdf.target, pdf.origin)
    return result


@ti.func
def mixture_pdf_value(mixture: MixturePDF, direction: vec3) -> ti.f32:
    """Density ``0.5 * p0 + 0.5 * p1`` of ``direction``."""
    return 0.5 * pdf_value(mixture.p0, direction) + 0.5 * pdf_value(mixture.p1, direction)


@ti.func
def mixture_pdf_generate(mixture: MixturePDF) -> vec3:
    """Flip a fair coin, then draw from the chosen component."""
    result = vec3(0.0, 0.0, 0.0)
    if ti.random(ti.f32) < 0.5:
        result = pdf_generate(mixture.p0)
    else:
        result = pdf_generate(mixture.p1)
    return result
