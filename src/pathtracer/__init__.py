"""CPU ray tracer built on Taichi kernels.

The package renders a scene of spheres, quads and constant-density media
into a pixel buffer by stochastic ray tracing:
- Median-split bounding volume hierarchy for nearest-hit queries
- Lambertian, metal, dielectric, emissive and isotropic materials
- Solid, checker, Perlin noise and image textures
- Thin-lens camera with defocus blur
- Row-band parallel rendering with per-pixel random streams

Subpackages:
    core: Rays, sampling, bounding boxes, light transport and the renderer
    geometry: Sphere, quad and medium primitives, transforms, BVH construction
    materials: Scattering models and the device material table
    scene: Immutable scene description, device tables and preset scenes
    camera: Thin-lens camera with ray generation
    preview: Image export for finished frame buffers

Taichi must be initialised (see pathtracer.runtime.init_taichi) before any
module that declares Taichi fields is imported.
"""

__version__ = "0.1.0"
