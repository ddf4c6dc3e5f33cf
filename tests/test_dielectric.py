"""Unit tests for the Dielectric material module.

Tests cover:
- Refraction at normal incidence
- Total internal reflection leaving a dense medium
- Fresnel reflectance at normal incidence
- Registry operations and IOR validation
"""

import math

import pytest
import taichi as ti

N = 8192


class TestRefraction:
    def test_normal_incidence_mostly_passes_through(self):
        """About 4% of rays reflect from glass at normal incidence."""
        from pathtracer.materials.dielectric import scatter_dielectric, vec3

        reflected = ti.field(dtype=ti.i32, shape=())
        bad = ti.field(dtype=ti.i32, shape=())

        @ti.kernel
        def test_kernel():
            for _ in range(N):
                d = scatter_dielectric(1.5, vec3(0.0, -1.0, 0.0), vec3(0.0, 1.0, 0.0), 1)
                if d.y > 0.999:
                    reflected[None] += 1
                elif d.y > -0.999:
                    bad[None] += 1

        test_kernel()
        assert bad[None] == 0
        assert reflected[None] / N == pytest.approx(0.04, abs=0.01)

    def test_output_is_unit_length(self):
        from pathtracer.materials.dielectric import scatter_dielectric, vec3

        worst = ti.field(dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            for _ in range(N):
                d = scatter_dielectric(1.5, vec3(0.6, -0.8, 0.0), vec3(0.0, 1.0, 0.0), 1)
                ti.atomic_max(worst[None], ti.abs(d.norm() - 1.0))

        test_kernel()
        assert worst[None] < 1e-5

    def test_refracted_angle_follows_snell(self):
        from pathtracer.materials.dielectric import scatter_dielectric, vec3

        sin_out = ti.field(dtype=ti.f32, shape=())
        theta = math.radians(30.0)

        @ti.kernel
        def test_kernel():
            for _ in range(N):
                d = scatter_dielectric(
                    1.5, vec3(ti.sin(theta), -ti.cos(theta), 0.0), vec3(0.0, 1.0, 0.0), 1
                )
                # Keep only the transmitted samples
                if d.y < 0.0:
                    sin_out[None] = d.x

        test_kernel()
        assert sin_out[None] == pytest.approx(math.sin(theta) / 1.5, abs=1e-4)


class TestTotalInternalReflection:
    def test_steep_exit_always_reflects(self):
        from pathtracer.materials.dielectric import scatter_dielectric, will_reflect, vec3

        transmitted = ti.field(dtype=ti.i32, shape=())
        tir = ti.field(dtype=ti.i32, shape=())

        @ti.kernel
        def test_kernel():
            for _ in range(N):
                # Leaving glass at 60 degrees: 1.5 * sin(60) > 1
                incident = vec3(ti.sin(math.pi / 3.0), ti.cos(math.pi / 3.0), 0.0)
                normal = vec3(0.0, -1.0, 0.0)
                tir[None] = will_reflect(1.5, incident, normal, 0)
                d = scatter_dielectric(1.5, incident, normal, 0)
                if d.y > 0.0:
                    transmitted[None] += 1

        test_kernel()
        assert tir[None] == 1
        assert transmitted[None] == 0

    def test_entering_never_totally_reflects(self):
        from pathtracer.materials.dielectric import will_reflect, vec3

        tir = ti.field(dtype=ti.i32, shape=())

        @ti.kernel
        def test_kernel():
            tir[None] = will_reflect(1.5, vec3(0.99, -0.1, 0.0), vec3(0.0, 1.0, 0.0), 1)

        test_kernel()
        assert tir[None] == 0

    def test_fresnel_at_normal_incidence(self):
        from pathtracer.materials.dielectric import fresnel_reflectance, vec3

        result = ti.field(dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            result[None] = fresnel_reflectance(1.5, vec3(0.0, -1.0, 0.0), vec3(0.0, 1.0, 0.0), 1)

        test_kernel()
        assert result[None] == pytest.approx(0.04, abs=1e-5)

    def test_reflected_fraction_follows_fresnel(self):
        from pathtracer.materials.dielectric import scatter_dielectric, vec3

        reflected = ti.field(dtype=ti.i32, shape=())
        n = 100_000

        @ti.kernel
        def test_kernel():
            for _ in range(n):
                d = scatter_dielectric(1.5, vec3(0.0, -1.0, 0.0), vec3(0.0, 1.0, 0.0), 1)
                if d.y > 0.0:
                    reflected[None] += 1

        test_kernel()
        assert reflected[None] / n == pytest.approx(0.04, abs=0.005)


class TestDielectricRegistry:
    @pytest.mark.parametrize("ior", [0.0, -1.5])
    def test_rejects_non_positive_ior(self, ior):
        from pathtracer.materials.dielectric import add_dielectric_material

        with pytest.raises(ValueError, match="positive"):
            add_dielectric_material(ior)

    def test_bubble_ior_below_one_is_accepted(self):
        from pathtracer.materials.dielectric import add_dielectric_material, get_dielectric_material_count

        add_dielectric_material(1.0 / 1.33)
        assert get_dielectric_material_count() == 1

    def test_default_ior(self):
        from pathtracer.materials.dielectric import add_dielectric_material, dielectric_iors

        idx = add_dielectric_material()
        assert dielectric_iors[idx] == pytest.approx(1.5)
