"""Cornell box scene configuration.

The Cornell box is an open box of five diffuse walls lit by a single area
light in the ceiling:

- Left wall: red diffuse
- Right wall: green diffuse
- Back, floor, ceiling: white diffuse
- 3 spheres with different materials (diffuse, metal, glass)
- Emissive quad just below the ceiling, registered as the scene's light

The box spans 0 to ``box_size`` on each axis and the camera looks in through
the open front. The background is black, so all illumination comes from the
ceiling light.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from pathtracer.scene.cornell_box import create_cornell_box_scene
    >>> from pathtracer.camera.thin_lens import setup_camera
    >>>
    >>> scene, camera, light_id = create_cornell_box_scene()
    >>> setup_camera(camera)
"""

from __future__ import annotations

from dataclasses import dataclass

from pathtracer.camera.thin_lens import ThinLensCamera
from pathtracer.core.integrator import set_background
from pathtracer.scene.manager import SceneManager


@dataclass
class CornellBoxParams:
    """Parameters for configuring a Cornell box scene.

    Attributes:
        light_intensity: Scale applied to ``light_color`` for the emission.
        light_color: RGB color of the light (each component in [0, 1]).
        left_wall_color: RGB albedo of the left wall.
        right_wall_color: RGB albedo of the right wall.
        back_wall_color: RGB albedo of the back wall, floor and ceiling.

    Example:
        >>> warm = CornellBoxParams(light_intensity=20.0, light_color=(1.0, 0.9, 0.8))
    """

    light_intensity: float = 15.0
    light_color: tuple[float, float, float] = (1.0, 1.0, 1.0)
    left_wall_color: tuple[float, float, float] = (0.65, 0.05, 0.05)
    right_wall_color: tuple[float, float, float] = (0.12, 0.45, 0.15)
    back_wall_color: tuple[float, float, float] = (0.73, 0.73, 0.73)

    @property
    def emission(self) -> tuple[float, float, float]:
        """Light emission as an RGB triple."""
        r, g, b = self.light_color
        return (r * self.light_intensity, g * self.light_intensity, b * self.light_intensity)


# =============================================================================
# Cornell Box Constants
# =============================================================================

BOX_SIZE = 555.0

LIGHT_WIDTH = 130.0
LIGHT_DEPTH = 105.0

DIFFUSE_SPHERE_ALBEDO = (0.73, 0.73, 0.73)
GLASS_SPHERE_IOR = 1.5
METAL_SPHERE_ALBEDO = (0.95, 0.93, 0.88)
METAL_SPHERE_FUZZ = 0.3
SPHERE_RADIUS = 80.0


def get_light_quad_info(box_size: float = BOX_SIZE) -> dict[str, tuple[float, float, float] | float]:
    """Geometry of the ceiling light.

    Returns:
        A dict with ``corner``, ``edge_u`` and ``edge_v`` describing the quad,
        its ``center`` and its ``area``. The edges are ordered so the quad's
        normal points down into the box.
    """
    x_offset = (box_size - LIGHT_WIDTH) / 2.0
    z_offset = (box_size - LIGHT_DEPTH) / 2.0
    # Just below the ceiling so the two never coincide
    light_y = box_size - 1.0
    return {
        "corner": (x_offset, light_y, z_offset),
        "edge_u": (LIGHT_WIDTH, 0.0, 0.0),
        "edge_v": (0.0, 0.0, LIGHT_DEPTH),
        "center": (x_offset + LIGHT_WIDTH / 2.0, light_y, z_offset + LIGHT_DEPTH / 2.0),
        "area": LIGHT_WIDTH * LIGHT_DEPTH,
    }


def create_cornell_box_scene(
    box_size: float = BOX_SIZE,
    params: CornellBoxParams | None = None,
    seed: int | None = None,
) -> tuple[SceneManager, ThinLensCamera, int]:
    """Create and build the Cornell box.

    The coordinate system places the box origin at (0, 0, 0) with X running
    left to right, Y floor to ceiling and Z front to back; the camera looks
    toward +Z. Sets the integrator background to black.

    Args:
        box_size: Edge length of the box.
        params: Light and wall colors; defaults to ``CornellBoxParams()``.
        seed: Seed for the BVH build.

    Returns:
        Tuple of (scene, camera, light_primitive_id).
    """
    if params is None:
        params = CornellBoxParams()

    scene = SceneManager()

    left_mat = scene.add_lambertian_material(params.left_wall_color)
    right_mat = scene.add_lambertian_material(params.right_wall_color)
    white_mat = scene.add_lambertian_material(params.back_wall_color)
    light_mat = scene.add_diffuse_light_material(params.emission)

    diffuse_mat = scene.add_lambertian_material(DIFFUSE_SPHERE_ALBEDO)
    metal_mat = scene.add_metal_material(METAL_SPHERE_ALBEDO, fuzz=METAL_SPHERE_FUZZ)
    glass_mat = scene.add_dielectric_material(GLASS_SPHERE_IOR)

    # The camera looks down +Z, so x = 0 is on the right of the image
    scene.add_quad((0.0, 0.0, 0.0), (0.0, box_size, 0.0), (0.0, 0.0, box_size), right_mat)
    scene.add_quad((box_size, 0.0, box_size), (0.0, box_size, 0.0), (0.0, 0.0, -box_size), left_mat)
    scene.add_quad((0.0, 0.0, box_size), (box_size, 0.0, 0.0), (0.0, box_size, 0.0), white_mat)
    scene.add_quad((0.0, 0.0, 0.0), (box_size, 0.0, 0.0), (0.0, 0.0, box_size), white_mat)
    scene.add_quad((0.0, box_size, box_size), (box_size, 0.0, 0.0), (0.0, 0.0, -box_size), white_mat)

    light = get_light_quad_info(box_size)
    light_id = scene.add_quad(light["corner"], light["edge_u"], light["edge_v"], light_mat)

    # Spheres resting on the floor
    scene.add_sphere((box_size * 0.27, SPHERE_RADIUS, box_size * 0.35), SPHERE_RADIUS, diffuse_mat)
    scene.add_sphere((box_size * 0.73, SPHERE_RADIUS, box_size * 0.35), SPHERE_RADIUS, metal_mat)
    scene.add_sphere((box_size * 0.5, SPHERE_RADIUS, box_size * 0.65), SPHERE_RADIUS, glass_mat)

    scene.build(seed=seed)
    set_background((0.0, 0.0, 0.0))

    camera_distance = 800.0
    camera = ThinLensCamera(
        lookfrom=(box_size / 2.0, box_size / 2.0, -camera_distance),
        lookat=(box_size / 2.0, box_size / 2.0, box_size / 2.0),
        vup=(0.0, 1.0, 0.0),
        vfov=40.0,
        aspect_ratio=1.0,
    )
    return scene, camera, light_id


def get_cornell_box_bounds(box_size: float = BOX_SIZE) -> dict[str, tuple[float, float, float]]:
    """Minimum and maximum corners of the box interior."""
    return {
        "min": (0.0, 0.0, 0.0),
        "max": (box_size, box_size, box_size),
        "center": (box_size / 2.0, box_size / 2.0, box_size / 2.0),
    }
