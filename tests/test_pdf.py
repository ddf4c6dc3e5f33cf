"""Tests for the cosine, geometry and mixture sampling distributions."""

import math

import pytest
import taichi as ti

N = 8192


class TestCosinePDF:
    def test_value(self):
        from pathtracer.core.pdf import make_cosine_pdf, pdf_value, vec3

        result = ti.field(dtype=ti.f32, shape=3)

        @ti.kernel
        def test_kernel():
            pdf = make_cosine_pdf(vec3(0.0, 2.0, 0.0))
            result[0] = pdf_value(pdf, vec3(0.0, 1.0, 0.0))
            result[1] = pdf_value(pdf, vec3(1.0, 1.0, 0.0))
            result[2] = pdf_value(pdf, vec3(0.0, -1.0, 0.0))

        test_kernel()
        assert result[0] == pytest.approx(1.0 / math.pi, rel=1e-5)
        assert result[1] == pytest.approx(math.cos(math.pi / 4) / math.pi, rel=1e-5)
        assert result[2] == 0.0

    def test_generate_stays_in_hemisphere(self):
        from pathtracer.core.pdf import make_cosine_pdf, pdf_generate, vec3

        below = ti.field(dtype=ti.i32, shape=())

        @ti.kernel
        def test_kernel():
            for _ in range(N):
                normal = vec3(0.3, -0.4, 0.8)
                d = pdf_generate(make_cosine_pdf(normal))
                if d.dot(normal) < 0.0:
                    below[None] += 1

        test_kernel()
        assert below[None] == 0

    def test_estimator_of_projected_solid_angle(self):
        """Averaging cos/pdf over cosine samples integrates to pi."""
        from pathtracer.core.pdf import make_cosine_pdf, pdf_generate, pdf_value, vec3

        total = ti.field(dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            for _ in range(N):
                normal = vec3(0.0, 0.0, 1.0)
                pdf = make_cosine_pdf(normal)
                d = pdf_generate(pdf)
                p = pdf_value(pdf, d)
                if p > 0.0:
                    total[None] += d.normalized().dot(normal) / p

        test_kernel()
        assert total[None] / N == pytest.approx(math.pi, rel=0.02)


class TestGeometryPDF:
    def test_single_primitive_matches_quad_density(self):
        from pathtracer.core.pdf import make_geometry_pdf, pdf_value
        from pathtracer.scene.intersection import add_quad, vec3

        light = add_quad(vec3(-0.5, -0.5, -2.0), vec3(1.0, 0.0, 0.0), vec3(0.0, 1.0, 0.0))
        result = ti.field(dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            pdf = make_geometry_pdf(vec3(0.0, 0.0, 0.0), light)
            result[None] = pdf_value(pdf, vec3(0.0, 0.0, -1.0))

        test_kernel()
        assert result[None] == pytest.approx(4.0, rel=1e-4)

    def test_all_lights_averages_densities(self):
        from pathtracer.core.pdf import make_lights_pdf, pdf_value
        from pathtracer.scene.intersection import add_light, add_quad, vec3

        # Two unit lights; the probe direction only reaches the first one
        add_light(add_quad(vec3(-0.5, -0.5, -2.0), vec3(1.0, 0.0, 0.0), vec3(0.0, 1.0, 0.0)))
        add_light(add_quad(vec3(5.0, -0.5, -2.0), vec3(1.0, 0.0, 0.0), vec3(0.0, 1.0, 0.0)))
        result = ti.field(dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            for _ in range(1):
                result[None] = pdf_value(make_lights_pdf(vec3(0.0, 0.0, 0.0)), vec3(0.0, 0.0, -1.0))

        test_kernel()
        assert result[None] == pytest.approx(2.0, rel=1e-4)

    def test_no_lights_gives_zero_density(self):
        from pathtracer.core.pdf import make_lights_pdf, pdf_value
        from pathtracer.scene.intersection import vec3

        result = ti.field(dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            for _ in range(1):
                result[None] = pdf_value(make_lights_pdf(vec3(0.0, 0.0, 0.0)), vec3(0.0, 0.0, -1.0))

        test_kernel()
        assert result[None] == 0.0

    def test_generated_directions_reach_light(self):
        from pathtracer.core.pdf import make_lights_pdf, pdf_generate, pdf_value
        from pathtracer.scene.intersection import add_light, add_quad, vec3

        add_light(add_quad(vec3(-0.5, 3.0, -0.5), vec3(1.0, 0.0, 0.0), vec3(0.0, 0.0, 1.0)))
        zero_density = ti.field(dtype=ti.i32, shape=())

        @ti.kernel
        def test_kernel():
            for _ in range(N):
                pdf = make_lights_pdf(vec3(0.2, 0.0, 0.1))
                if pdf_value(pdf, pdf_generate(pdf)) <= 0.0:
                    zero_density[None] += 1

        test_kernel()
        assert zero_density[None] == 0


class TestMixturePDF:
    def test_value_is_equal_blend(self):
        from pathtracer.core.pdf import (
            make_cosine_pdf,
            make_geometry_pdf,
            make_mixture_pdf,
            mixture_pdf_value,
            pdf_value,
        )
        from pathtracer.scene.intersection import add_quad, vec3

        light = add_quad(vec3(-0.5, -0.5, 2.0), vec3(1.0, 0.0, 0.0), vec3(0.0, 1.0, 0.0))
        result = ti.field(dtype=ti.f32, shape=3)

        @ti.kernel
        def test_kernel():
            for _ in range(1):
                direction = vec3(0.1, 0.0, 1.0)
                p0 = make_cosine_pdf(vec3(0.0, 0.0, 1.0))
                p1 = make_geometry_pdf(vec3(0.0, 0.0, 0.0), light)
                result[0] = pdf_value(p0, direction)
                result[1] = pdf_value(p1, direction)
                result[2] = mixture_pdf_value(make_mixture_pdf(p0, p1), direction)

        test_kernel()
        assert result[2] == pytest.approx(0.5 * result[0] + 0.5 * result[1], rel=1e-5)

    def test_generate_draws_each_component_half_the_time(self):
        from pathtracer.core.pdf import (
            make_cosine_pdf,
            make_mixture_pdf,
            mixture_pdf_generate,
        )
        from pathtracer.scene.intersection import vec3

        # Opposite hemispheres make the chosen component identifiable
        upward = ti.field(dtype=ti.i32, shape=())

        @ti.kernel
        def test_kernel():
            for _ in range(N):
                mixture = make_mixture_pdf(
                    make_cosine_pdf(vec3(0.0, 1.0, 0.0)), make_cosine_pdf(vec3(0.0, -1.0, 0.0))
                )
                if mixture_pdf_generate(mixture).y > 0.0:
                    upward[None] += 1

        test_kernel()
        assert upward[None] / N == pytest.approx(0.5, abs=0.03)
