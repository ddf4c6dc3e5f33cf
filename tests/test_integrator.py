"""Tests for the path tracing integrator.

Most cases use convex scenes under a constant background, where every path
has a closed-form value: a ray that leaves a convex object never hits it
again, so a diffuse bounce (weight 1 without lights) or a mirror bounce
escapes straight to the background.
"""

import numpy as np
import pytest

BACKGROUND = (0.2, 0.4, 0.6)


def _front_camera():
    from pathtracer.camera.thin_lens import ThinLensCamera, setup_camera

    setup_camera(
        ThinLensCamera(
            lookfrom=(0.0, 0.0, 5.0),
            lookat=(0.0, 0.0, 0.0),
            vup=(0.0, 1.0, 0.0),
            vfov=40.0,
            aspect_ratio=4.0 / 3.0,
        )
    )


class TestSettings:
    def test_negative_depth_rejected(self):
        from pathtracer.core.integrator import set_max_depth

        with pytest.raises(ValueError, match="non-negative"):
            set_max_depth(-1)

    def test_reset_restores_defaults(self):
        from pathtracer.core.integrator import (
            DEFAULT_MAX_DEPTH,
            get_max_depth,
            reset_integrator_settings,
            set_max_depth,
            set_sky_gradient,
            trace_ray,
        )

        set_max_depth(3)
        set_sky_gradient(True)
        reset_integrator_settings()
        assert get_max_depth() == DEFAULT_MAX_DEPTH
        assert trace_ray((0.0, 0.0, 0.0), (0.0, 1.0, 0.0)) == pytest.approx((0.0, 0.0, 0.0))


class TestBackground:
    def test_miss_returns_constant_background(self):
        from pathtracer.core.integrator import set_background, trace_ray

        set_background(BACKGROUND)
        assert trace_ray((0.0, 0.0, 0.0), (1.0, 2.0, 3.0)) == pytest.approx(BACKGROUND)

    def test_sky_gradient_follows_direction_height(self):
        from pathtracer.core.integrator import set_sky_gradient, trace_ray

        set_sky_gradient(True)
        assert trace_ray((0.0, 0.0, 0.0), (0.0, 1.0, 0.0)) == pytest.approx((0.5, 0.7, 1.0))
        assert trace_ray((0.0, 0.0, 0.0), (0.0, -1.0, 0.0)) == pytest.approx((1.0, 1.0, 1.0))
        assert trace_ray((0.0, 0.0, 0.0), (1.0, 0.0, 0.0)) == pytest.approx((0.75, 0.85, 1.0))

    def test_set_background_disables_sky(self):
        from pathtracer.core.integrator import set_background, set_sky_gradient, trace_ray

        set_sky_gradient(True)
        set_background(BACKGROUND)
        assert trace_ray((0.0, 0.0, 0.0), (0.0, 1.0, 0.0)) == pytest.approx(BACKGROUND)


class TestRayColor:
    def test_zero_depth_is_black(self):
        from pathtracer.core.integrator import set_background, trace_ray

        set_background(BACKGROUND)
        assert trace_ray((0.0, 0.0, 0.0), (0.0, 0.0, -1.0), depth=0) == (0.0, 0.0, 0.0)

    def test_single_segment_on_diffuse_surface_is_black(self):
        from pathtracer.core.integrator import set_background, trace_ray
        from pathtracer.scene.manager import SceneManager

        scene = SceneManager()
        scene.add_lambertian_sphere((0.0, 0.0, -3.0), 1.0, (0.8, 0.8, 0.8))
        scene.build(seed=0)
        set_background(BACKGROUND)
        assert trace_ray((0.0, 0.0, 0.0), (0.0, 0.0, -1.0), depth=1) == (0.0, 0.0, 0.0)

    def test_diffuse_bounce_scales_background_by_albedo(self):
        from pathtracer.core.integrator import set_background, trace_ray
        from pathtracer.scene.manager import SceneManager

        scene = SceneManager()
        scene.add_lambertian_sphere((0.0, 0.0, -3.0), 1.0, (0.8, 0.5, 0.25))
        scene.build(seed=0)
        set_background((1.0, 1.0, 1.0))
        for _ in range(16):
            color = trace_ray((0.0, 0.0, 0.0), (0.0, 0.0, -1.0), depth=2)
            assert color == pytest.approx((0.8, 0.5, 0.25), rel=1e-4)

    def test_mirror_reflects_background(self):
        from pathtracer.core.integrator import set_background, trace_ray
        from pathtracer.scene.manager import SceneManager

        scene = SceneManager()
        scene.add_metal_sphere((0.0, 0.0, -3.0), 1.0, (0.5, 0.5, 0.5), fuzz=0.0)
        scene.build(seed=0)
        set_background(BACKGROUND)
        color = trace_ray((0.0, 0.0, 0.0), (0.0, 0.0, -1.0))
        assert color == pytest.approx(tuple(0.5 * c for c in BACKGROUND), rel=1e-4)

    def test_glass_transmits_without_loss(self):
        from pathtracer.core.integrator import set_background, trace_ray
        from pathtracer.scene.manager import SceneManager

        scene = SceneManager()
        scene.add_dielectric_sphere((0.0, 0.0, -3.0), 1.0, ior=1.5)
        scene.build(seed=0)
        set_background(BACKGROUND)
        for _ in range(16):
            assert trace_ray((0.0, 0.0, 0.0), (0.0, 0.0, -1.0)) == pytest.approx(BACKGROUND, rel=1e-4)

    def test_light_returns_its_emission(self):
        from pathtracer.core.integrator import trace_ray
        from pathtracer.scene.manager import SceneManager

        scene = SceneManager()
        scene.add_light_quad((-1.0, -1.0, -2.0), (2.0, 0.0, 0.0), (0.0, 2.0, 0.0), (4.0, 3.0, 2.0))
        scene.build(seed=0)
        assert trace_ray((0.0, 0.0, 0.0), (0.0, 0.0, -1.0)) == pytest.approx((4.0, 3.0, 2.0))

    def test_diffuse_surface_under_light_is_lit(self):
        """With light sampling, a floor under an emitter picks up light."""
        from pathtracer.core.integrator import trace_ray
        from pathtracer.scene.manager import SceneManager

        scene = SceneManager()
        scene.add_lambertian_quad((-5.0, 0.0, -5.0), (10.0, 0.0, 0.0), (0.0, 0.0, 10.0), (0.5, 0.5, 0.5))
        scene.add_light_quad((-0.5, 2.0, -0.5), (1.0, 0.0, 0.0), (0.0, 0.0, 1.0), (10.0, 10.0, 10.0))
        scene.build(seed=0)
        samples = [trace_ray((0.0, 1.0, 3.0), (0.0, -1.0, -3.0), depth=4) for _ in range(64)]
        mean = np.mean(samples, axis=0)
        assert np.all(np.isfinite(samples))
        assert mean[0] > 0.0

    def test_stale_bvh_raises(self):
        from pathtracer.core.integrator import trace_ray
        from pathtracer.scene.manager import SceneManager

        scene = SceneManager()
        scene.add_lambertian_sphere((0.0, 0.0, -3.0), 1.0, (0.5, 0.5, 0.5))
        with pytest.raises(RuntimeError, match="BVH"):
            trace_ray((0.0, 0.0, 0.0), (0.0, 0.0, -1.0))


class TestRenderTarget:
    @pytest.mark.parametrize("size", [(0, 10), (10, -1), (4096, 10)])
    def test_invalid_dimensions(self, size):
        from pathtracer.core.integrator import setup_render_target

        with pytest.raises(ValueError):
            setup_render_target(*size)

    def test_render_requires_target(self):
        from pathtracer.core import integrator

        integrator._render_target_initialized[None] = 0
        with pytest.raises(RuntimeError, match="setup_render_target"):
            integrator.render_image(1)

    def test_empty_scene_renders_background(self):
        from pathtracer.core.integrator import (
            get_image_numpy,
            get_total_samples,
            render_image,
            set_background,
            setup_render_target,
        )

        _front_camera()
        setup_render_target(8, 6)
        set_background(BACKGROUND)
        render_image(3)
        assert get_total_samples() == 3
        image = get_image_numpy()
        assert image.shape == (6, 8, 3)
        np.testing.assert_allclose(image, np.broadcast_to(BACKGROUND, image.shape), rtol=1e-5)

    def test_accumulation_sums_samples(self):
        from pathtracer.core.integrator import (
            get_accumulated_image,
            render_image,
            set_background,
            setup_render_target,
        )

        _front_camera()
        setup_render_target(4, 3)
        set_background((1.0, 1.0, 1.0))
        render_image(2)
        render_image(3)
        color_sum, counts = get_accumulated_image()
        assert counts.shape == (3, 4)
        assert np.all(counts == 5)
        np.testing.assert_allclose(color_sum, 5.0)

    def test_image_rows_are_top_first(self):
        """Top pixel rows see the upper half of the sky."""
        from pathtracer.core.integrator import (
            get_image_numpy,
            render_image,
            set_sky_gradient,
            setup_render_target,
        )

        _front_camera()
        setup_render_target(4, 6)
        set_sky_gradient(True)
        render_image(1)
        image = get_image_numpy()
        # The top color is less red than the bottom color
        assert image[0, :, 0].mean() < image[-1, :, 0].mean()

    def test_clear_resets_counts(self):
        from pathtracer.core.integrator import (
            clear_render_target,
            get_total_samples,
            render_image,
            setup_render_target,
        )

        _front_camera()
        setup_render_target(4, 4)
        render_image(2)
        clear_render_target()
        assert get_total_samples() == 0

    def test_render_sample_does_not_accumulate(self):
        from pathtracer.core.integrator import (
            get_total_samples,
            render_sample,
            set_background,
            setup_render_target,
        )

        _front_camera()
        setup_render_target(4, 4)
        set_background(BACKGROUND)
        assert render_sample(1, 2) == pytest.approx(BACKGROUND)
        assert get_total_samples() == 0
