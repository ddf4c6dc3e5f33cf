"""Tests for the thin-lens camera."""

import math

import numpy as np
import pytest
import taichi as ti


def _camera(**overrides):
    from pathtracer.camera.thin_lens import ThinLensCamera

    params = dict(
        lookfrom=(0.0, 0.0, 0.0),
        lookat=(0.0, 0.0, -1.0),
        vup=(0.0, 1.0, 0.0),
        vfov=90.0,
        aspect_ratio=2.0,
    )
    params.update(overrides)
    return ThinLensCamera(**params)


def _rays(s, t, count=1):
    """Trace ``count`` rays through viewport point (s, t)."""
    from pathtracer.camera.thin_lens import get_ray

    origins = ti.Vector.field(3, dtype=ti.f32, shape=count)
    directions = ti.Vector.field(3, dtype=ti.f32, shape=count)

    @ti.kernel
    def test_kernel(s: ti.f32, t: ti.f32):
        for k in range(count):
            ray = get_ray(s, t)
            origins[k] = ray.origin
            directions[k] = ray.direction

    test_kernel(s, t)
    return origins.to_numpy(), directions.to_numpy()


class TestValidation:
    @pytest.mark.parametrize(
        "overrides, message",
        [
            ({"vfov": 0.0}, "vfov"),
            ({"vfov": 180.0}, "vfov"),
            ({"aspect_ratio": 0.0}, "aspect_ratio"),
            ({"aperture": -0.1}, "aperture"),
            ({"focus_dist": 0.0}, "focus_dist"),
            ({"lookat": (0.0, 0.0, 0.0)}, "lookfrom and lookat"),
            ({"vup": (0.0, 0.0, 1.0)}, "parallel"),
        ],
    )
    def test_rejects_invalid_configuration(self, overrides, message):
        with pytest.raises(ValueError, match=message):
            _camera(**overrides).validate()

    def test_setup_validates(self):
        from pathtracer.camera.thin_lens import setup_camera

        with pytest.raises(ValueError):
            setup_camera(_camera(vfov=-5.0))


class TestBasis:
    def test_basis_for_default_view(self):
        from pathtracer.camera.thin_lens import get_camera_info, setup_camera

        setup_camera(_camera())
        info = get_camera_info()
        assert info["w"] == pytest.approx((0.0, 0.0, 1.0))
        assert info["u"] == pytest.approx((1.0, 0.0, 0.0))
        assert info["v"] == pytest.approx((0.0, 1.0, 0.0))
        # vfov 90 gives a viewport 2 high at distance 1
        assert info["vertical"] == pytest.approx((0.0, 2.0, 0.0))
        assert info["horizontal"] == pytest.approx((4.0, 0.0, 0.0))
        assert info["lower_left"] == pytest.approx((-2.0, -1.0, -1.0))
        assert info["lens_radius"] == (0.0,)

    def test_viewport_scales_with_focus_distance(self):
        from pathtracer.camera.thin_lens import get_camera_info, setup_camera

        setup_camera(_camera(focus_dist=10.0, aperture=2.0))
        info = get_camera_info()
        assert info["vertical"] == pytest.approx((0.0, 20.0, 0.0), rel=1e-5)
        assert info["lower_left"][2] == pytest.approx(-10.0)
        assert info["lens_radius"] == (1.0,)


class TestRayGeneration:
    def test_center_ray_points_at_lookat(self):
        from pathtracer.camera.thin_lens import setup_camera

        setup_camera(_camera(lookfrom=(3.0, 2.0, 1.0), lookat=(0.0, 0.0, 0.0)))
        origins, directions = _rays(0.5, 0.5)
        expected = -np.array([3.0, 2.0, 1.0]) / math.sqrt(14.0)
        assert origins[0] == pytest.approx([3.0, 2.0, 1.0])
        assert directions[0] == pytest.approx(expected, abs=1e-5)

    def test_corners(self):
        from pathtracer.camera.thin_lens import setup_camera

        setup_camera(_camera())
        _, directions = _rays(0.0, 0.0)
        corner = np.array([-2.0, -1.0, -1.0]) / math.sqrt(6.0)
        assert directions[0] == pytest.approx(corner, abs=1e-5)
        _, directions = _rays(1.0, 1.0)
        assert directions[0] == pytest.approx(corner * [-1.0, -1.0, 1.0], abs=1e-5)

    def test_pinhole_origin_is_fixed(self):
        from pathtracer.camera.thin_lens import setup_camera

        setup_camera(_camera(lookfrom=(1.0, 1.0, 1.0), lookat=(1.0, 1.0, 0.0)))
        origins, _ = _rays(0.3, 0.7, count=256)
        np.testing.assert_allclose(origins, np.broadcast_to([1.0, 1.0, 1.0], origins.shape))

    def test_lens_origins_stay_on_lens_disk(self):
        from pathtracer.camera.thin_lens import setup_camera

        setup_camera(_camera(aperture=0.5, focus_dist=4.0))
        origins, directions = _rays(0.5, 0.5, count=512)
        offsets = origins - np.array([0.0, 0.0, 0.0])
        assert np.all(np.abs(offsets[:, 2]) < 1e-6)
        assert np.all(np.linalg.norm(offsets, axis=1) <= 0.25 + 1e-6)
        assert np.linalg.norm(offsets, axis=1).max() > 0.1

    def test_lens_rays_converge_on_focus_plane(self):
        from pathtracer.camera.thin_lens import setup_camera

        setup_camera(_camera(aperture=0.5, focus_dist=4.0))
        origins, directions = _rays(0.25, 0.75, count=128)
        # Every ray reaches the same point at z = -4
        t = (-4.0 - origins[:, 2]) / directions[:, 2]
        points = origins + t[:, np.newaxis] * directions
        np.testing.assert_allclose(points, np.broadcast_to(points[0], points.shape), atol=1e-4)
