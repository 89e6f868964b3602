"""Photon-mapping raytracer with lightning line lights.

This package renders scenes by combining Whitted-style ray tracing with a
photon map for indirect illumination:
- Recursive ray tracing with shadow rays and mirror reflection
- Photon tracing with Russian roulette into a KD-tree
- Radius-adaptive density estimation of indirect light
- Lightning segments treated as glowing line lights

Subpackages:
    core: Rays, photon map, photon tracing, ray tracing and rendering loop
    geometry: Taichi intersection routines for spheres, quads and triangles
    materials: Phong material model
    scene: Scene management, lights and hit records
    camera: Pinhole camera with primary-ray generation
    preview: Image output and debug visualization
"""

__version__ = "0.1.0"
