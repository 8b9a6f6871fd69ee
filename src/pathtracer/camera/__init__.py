"""Camera module for primary ray generation.

Components:
    thin_lens: Look-at camera with vertical field of view and defocus blur

Image coordinates are normalized:
    s in [0, 1]: left to right across the image
    t in [0, 1]: bottom to top across the image
"""
