"""Scene description and ray-scene queries.

Components:
    scene: Immutable Scene (validation, BVH build, device upload, dict form)
    intersection: Device primitive and BVH tables, nearest-hit queries
    presets: Ready-made scenes with matching cameras

These modules declare or depend on Taichi fields, so import them directly
after pathtracer.runtime.init_taichi():

    >>> from pathtracer.scene.presets import cornell_box_scene
    >>> scene, camera = cornell_box_scene()
"""
