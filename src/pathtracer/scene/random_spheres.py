"""The random spheres scene.

A large ground sphere carries a 22x22 grid of small spheres with randomly
chosen materials, around three large feature spheres (glass, diffuse and
polished metal). The scene is lit by the sky gradient and has no emitters,
so diffuse bounces sample the cosine PDF alone.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from pathtracer.scene.random_spheres import create_random_spheres_scene
    >>> from pathtracer.camera.thin_lens import setup_camera
    >>>
    >>> scene, camera = create_random_spheres_scene(seed=7)
    >>> setup_camera(camera)
"""

from __future__ import annotations

import logging

import numpy as np

from pathtracer.camera.thin_lens import ThinLensCamera
from pathtracer.core.integrator import set_sky_gradient
from pathtracer.scene.manager import SceneManager

logger = logging.getLogger(__name__)

GRID_EXTENT = 11
SMALL_RADIUS = 0.2
# Small spheres closer than this to the metal feature sphere are dropped
CLEARANCE_POINT = np.array([4.0, 0.2, 0.0])
CLEARANCE = 0.9


def _add_small_spheres(scene: SceneManager, rng: np.random.Generator) -> int:
    added = 0
    for a in range(-GRID_EXTENT, GRID_EXTENT):
        for b in range(-GRID_EXTENT, GRID_EXTENT):
            choose_mat = rng.random()
            center = np.array([a + 0.9 * rng.random(), SMALL_RADIUS, b + 0.9 * rng.random()])
            if np.linalg.norm(center - CLEARANCE_POINT) < CLEARANCE:
                continue

            if choose_mat < 0.8:
                albedo = rng.random(3) * rng.random(3)
                material_id = scene.add_lambertian_material(tuple(albedo))
            elif choose_mat < 0.95:
                albedo = rng.uniform(0.5, 1.0, 3)
                fuzz = rng.uniform(0.0, 0.5)
                material_id = scene.add_metal_material(tuple(albedo), fuzz)
            else:
                material_id = scene.add_dielectric_material(1.5)
            scene.add_sphere(tuple(center), SMALL_RADIUS, material_id)
            added += 1
    return added


def create_random_spheres_scene(
    seed: int | None = None,
    aspect_ratio: float = 16.0 / 9.0,
) -> tuple[SceneManager, ThinLensCamera]:
    """Create and build the random spheres scene.

    Enables the sky gradient background. The same ``seed`` gives the same
    sphere layout and BVH.

    Args:
        seed: Seed for sphere placement, materials and BVH construction.
        aspect_ratio: Aspect ratio of the returned camera.

    Returns:
        Tuple of (scene, camera).
    """
    rng = np.random.default_rng(seed)
    scene = SceneManager()

    ground = scene.add_lambertian_material((0.5, 0.5, 0.5))
    scene.add_sphere((0.0, -1000.0, 0.0), 1000.0, ground)

    small = _add_small_spheres(scene, rng)

    scene.add_sphere((0.0, 1.0, 0.0), 1.0, scene.add_dielectric_material(1.5))
    scene.add_sphere((-4.0, 1.0, 0.0), 1.0, scene.add_lambertian_material((0.4, 0.2, 0.1)))
    scene.add_sphere((4.0, 1.0, 0.0), 1.0, scene.add_metal_material((0.7, 0.6, 0.5), 0.0))

    logger.debug("Random spheres scene: %d small spheres", small)
    scene.build(rng)
    set_sky_gradient(True)

    camera = ThinLensCamera(
        lookfrom=(13.0, 2.0, 6.0),
        lookat=(0.0, 0.0, 0.0),
        vup=(0.0, 1.0, 0.0),
        vfov=20.0,
        aspect_ratio=aspect_ratio,
        aperture=0.1,
        focus_dist=10.0,
    )
    return scene, camera
