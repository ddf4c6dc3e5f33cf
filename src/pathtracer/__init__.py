"""Taichi path tracer with BVH acceleration and light importance sampling.

Subpackages:
    core: Ray primitives, PDFs, the integrator and the progressive driver
    geometry: AABBs, spheres, quads and the BVH builder
    materials: Textures and the Lambertian, metal, dielectric and diffuse
        light materials
    scene: Primitive storage, BVH traversal, the scene manager and example
        scenes
    camera: Thin-lens camera
    preview: Tone mapping and image export

Modules that declare Taichi fields must be imported after ``ti.init`` (see
``pathtracer.config.init_taichi``), so this package imports none of them.
"""

__version__ = "0.2.0"
