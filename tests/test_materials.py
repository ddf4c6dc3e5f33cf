"""Tests for textures and the unified material dispatch."""

import math

import numpy as np
import pytest
import taichi as ti


def _record_func():
    """Func building a hit on the plane y = 0 from above, at the origin."""
    from pathtracer.scene.intersection import SceneHitRecord, vec3

    @ti.func
    def make_record(material_id: ti.i32) -> SceneHitRecord:
        return SceneHitRecord(
            hit=1,
            t=1.0,
            point=vec3(0.0, 0.0, 0.0),
            normal=vec3(0.0, 1.0, 0.0),
            front_face=1,
            u=0.25,
            v=0.25,
            material_id=material_id,
            primitive_id=0,
        )

    return make_record


class TestTextures:
    def test_solid_texture(self):
        from pathtracer.materials.textures import add_solid_texture, texture_value, vec3

        tex = add_solid_texture((0.1, 0.2, 0.3))
        result = ti.Vector.field(3, dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            result[None] = texture_value(tex, 0.9, 0.1, vec3(5.0, 5.0, 5.0))

        test_kernel()
        assert result.to_numpy() == pytest.approx([0.1, 0.2, 0.3])

    def test_checker_alternates_cells(self):
        from pathtracer.materials.textures import add_checker_texture, texture_value, vec3

        tex = add_checker_texture((1.0, 1.0, 1.0), (0.0, 0.0, 0.0), scale=4.0)
        result = ti.field(dtype=ti.f32, shape=4)

        @ti.kernel
        def test_kernel():
            p = vec3(0.0, 0.0, 0.0)
            result[0] = texture_value(tex, 0.1, 0.1, p).x
            result[1] = texture_value(tex, 0.3, 0.1, p).x
            result[2] = texture_value(tex, 0.3, 0.3, p).x
            result[3] = texture_value(tex, 0.1, 0.6, p).x

        test_kernel()
        assert list(result.to_numpy()) == [1.0, 0.0, 1.0, 1.0]

    def test_checker_scale_must_be_positive(self):
        from pathtracer.materials.textures import add_checker_texture

        with pytest.raises(ValueError, match="scale"):
            add_checker_texture((1.0, 1.0, 1.0), (0.0, 0.0, 0.0), scale=0.0)

    def test_texture_count(self):
        from pathtracer.materials.textures import add_solid_texture, get_texture_count

        add_solid_texture((0.5, 0.5, 0.5))
        add_solid_texture((0.5, 0.5, 0.5))
        assert get_texture_count() == 2


class TestDiffuseLight:
    def test_negative_emission_rejected(self):
        from pathtracer.materials.diffuse_light import add_diffuse_light_material

        with pytest.raises(ValueError, match="negative"):
            add_diffuse_light_material((1.0, -1.0, 1.0))

    def test_emission_above_one_allowed(self):
        from pathtracer.materials.diffuse_light import (
            add_diffuse_light_material,
            get_diffuse_light_emission,
            vec3,
        )

        idx = add_diffuse_light_material((15.0, 15.0, 15.0))
        result = ti.Vector.field(3, dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            result[None] = get_diffuse_light_emission(idx, 0.5, 0.5, vec3(0.0, 0.0, 0.0))

        test_kernel()
        assert result.to_numpy() == pytest.approx([15.0, 15.0, 15.0])


class TestDispatch:
    def test_lambertian_scatters_with_cosine_pdf(self):
        from pathtracer.core.pdf import PDFKind
        from pathtracer.materials.material import emitted, scatter, scattering_pdf
        from pathtracer.scene.manager import SceneManager
        from pathtracer.scene.intersection import vec3

        mat = SceneManager().add_lambertian_material((0.6, 0.5, 0.4))
        flags = ti.field(dtype=ti.i32, shape=3)
        attenuation = ti.Vector.field(3, dtype=ti.f32, shape=())
        light = ti.Vector.field(3, dtype=ti.f32, shape=())
        density = ti.field(dtype=ti.f32, shape=())

        make_record = _record_func()

        @ti.kernel
        def test_kernel():
            rec = make_record(mat)
            srec = scatter(vec3(0.0, -1.0, 0.0), rec)
            flags[0] = srec.did_scatter
            flags[1] = srec.is_specular
            flags[2] = srec.pdf.kind
            attenuation[None] = srec.attenuation
            light[None] = emitted(mat, rec.u, rec.v, rec.point)
            density[None] = scattering_pdf(mat, rec.normal, vec3(0.0, 1.0, 0.0))

        test_kernel()
        assert list(flags.to_numpy()) == [1, 0, int(PDFKind.COSINE)]
        assert attenuation.to_numpy() == pytest.approx([0.6, 0.5, 0.4])
        assert light.to_numpy() == pytest.approx([0.0, 0.0, 0.0])
        assert density[None] == pytest.approx(1.0 / math.pi)

    def test_metal_is_specular(self):
        from pathtracer.materials.material import scatter, scattering_pdf
        from pathtracer.scene.manager import SceneManager
        from pathtracer.scene.intersection import vec3

        mat = SceneManager().add_metal_material((0.9, 0.8, 0.7), fuzz=0.0)
        flags = ti.field(dtype=ti.i32, shape=2)
        direction = ti.Vector.field(3, dtype=ti.f32, shape=())
        density = ti.field(dtype=ti.f32, shape=())

        make_record = _record_func()

        @ti.kernel
        def test_kernel():
            srec = scatter(vec3(1.0, -1.0, 0.0), make_record(mat))
            flags[0] = srec.did_scatter
            flags[1] = srec.is_specular
            direction[None] = srec.specular_ray.direction
            density[None] = scattering_pdf(mat, vec3(0.0, 1.0, 0.0), vec3(0.0, 1.0, 0.0))

        test_kernel()
        assert list(flags.to_numpy()) == [1, 1]
        inv_sqrt2 = 1.0 / math.sqrt(2.0)
        assert direction.to_numpy() == pytest.approx([inv_sqrt2, inv_sqrt2, 0.0], abs=1e-5)
        assert density[None] == 0.0

    def test_fuzzy_metal_ray_is_normalized(self):
        from pathtracer.materials.material import scatter
        from pathtracer.scene.manager import SceneManager
        from pathtracer.scene.intersection import vec3

        mat = SceneManager().add_metal_material((0.9, 0.9, 0.9), fuzz=1.0)
        n = 1024
        lengths = ti.field(dtype=ti.f32, shape=n)

        make_record = _record_func()

        @ti.kernel
        def test_kernel():
            for k in range(n):
                srec = scatter(vec3(1.0, -1.0, 0.0), make_record(mat))
                lengths[k] = srec.specular_ray.direction.norm()

        test_kernel()
        np.testing.assert_allclose(lengths.to_numpy(), 1.0, atol=1e-5)

    def test_dielectric_has_white_attenuation(self):
        from pathtracer.materials.material import scatter
        from pathtracer.scene.manager import SceneManager
        from pathtracer.scene.intersection import vec3

        mat = SceneManager().add_dielectric_material(1.5)
        attenuation = ti.Vector.field(3, dtype=ti.f32, shape=())
        specular = ti.field(dtype=ti.i32, shape=())

        make_record = _record_func()

        @ti.kernel
        def test_kernel():
            srec = scatter(vec3(0.0, -1.0, 0.0), make_record(mat))
            attenuation[None] = srec.attenuation
            specular[None] = srec.is_specular

        test_kernel()
        assert attenuation.to_numpy() == pytest.approx([1.0, 1.0, 1.0])
        assert specular[None] == 1

    def test_light_emits_and_absorbs(self):
        from pathtracer.materials.material import emitted, scatter
        from pathtracer.scene.manager import SceneManager
        from pathtracer.scene.intersection import vec3

        mat = SceneManager().add_diffuse_light_material((4.0, 2.0, 1.0))
        did_scatter = ti.field(dtype=ti.i32, shape=())
        light = ti.Vector.field(3, dtype=ti.f32, shape=())

        make_record = _record_func()

        @ti.kernel
        def test_kernel():
            rec = make_record(mat)
            did_scatter[None] = scatter(vec3(0.0, -1.0, 0.0), rec).did_scatter
            light[None] = emitted(mat, rec.u, rec.v, rec.point)

        test_kernel()
        assert did_scatter[None] == 0
        assert light.to_numpy() == pytest.approx([4.0, 2.0, 1.0])

    def test_unknown_material_absorbs(self):
        from pathtracer.materials.material import emitted, get_material_count, scatter
        from pathtracer.scene.intersection import vec3

        assert get_material_count() == 0
        did_scatter = ti.field(dtype=ti.i32, shape=())
        light = ti.Vector.field(3, dtype=ti.f32, shape=())

        make_record = _record_func()

        @ti.kernel
        def test_kernel():
            did_scatter[None] = scatter(vec3(0.0, -1.0, 0.0), make_record(3)).did_scatter
            light[None] = emitted(3, 0.5, 0.5, vec3(0.0, 0.0, 0.0))

        test_kernel()
        assert did_scatter[None] == 0
        assert light.to_numpy() == pytest.approx([0.0, 0.0, 0.0])
