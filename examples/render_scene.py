#!/usr/bin/env python3
"""Render one of the preset scenes to an image file.

Usage:
    python examples/render_scene.py [options]

Options:
    --scene NAME        random-spheres, checkered-spheres, three-spheres, noise-spheres,
                        cornell-box, cornell-blocks or cornell-smoke (default: random-spheres)
    --width WIDTH       Image width in pixels (default: 400)
    --samples SAMPLES   Samples per pixel (default: 100)
    --depth DEPTH       Maximum bounces per sample (default: 50)
    --threads THREADS   Worker threads (default: all cores)
    --seed SEED         Global random seed (default: 0)
    --sampling PATTERN  random, stratified or center (default: random)
    --batch-size SIZE   Samples per progress update (default: 10)
    --output OUTPUT     Output file; .ppm writes plain PPM (default: render.png)
    --quiet             Suppress progress output

Example:
    python examples/render_scene.py --scene cornell-box --width 300 --samples 200
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path

SCENES = (
    "random-spheres",
    "checkered-spheres",
    "three-spheres",
    "noise-spheres",
    "cornell-box",
    "cornell-blocks",
    "cornell-smoke",
)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Render a preset scene.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--scene",
        choices=SCENES,
        default="random-spheres",
        help="Preset scene to render (default: random-spheres)",
    )
    parser.add_argument(
        "--width",
        type=int,
        default=400,
        help="Image width in pixels (default: 400)",
    )
    parser.add_argument(
        "--samples",
        type=int,
        default=100,
        help="Samples per pixel (default: 100)",
    )
    parser.add_argument(
        "--depth",
        type=int,
        default=50,
        help="Maximum bounces per sample (default: 50)",
    )
    parser.add_argument(
        "--threads",
        type=int,
        default=None,
        help="Worker threads (default: all cores)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=0,
        help="Global random seed (default: 0)",
    )
    parser.add_argument(
        "--sampling",
        choices=("random", "stratified", "center"),
        default="random",
        help="Sub-pixel sampling pattern (default: random)",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=10,
        help="Samples per progress update (default: 10)",
    )
    parser.add_argument(
        "--output",
        type=str,
        default="render.png",
        help="Output file path (default: render.png)",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress progress output",
    )
    return parser.parse_args(argv)


def render_scene(args: argparse.Namespace) -> Path:
    """Build the chosen preset, render it and save the image.

    Returns:
        Path to the saved image file.
    """
    # Lazy imports so Taichi is initialised before any field is declared
    from pathtracer.core.renderer import Renderer, RenderSettings
    from pathtracer.preview.export import save_image
    from pathtracer.runtime import get_thread_count
    from pathtracer.scene.presets import (
        CornellBoxParams,
        cornell_box_scene,
        noise_spheres_scene,
        random_spheres_scene,
        three_spheres_scene,
    )

    if args.scene == "cornell-box":
        scene, camera = cornell_box_scene()
    elif args.scene == "cornell-blocks":
        scene, camera = cornell_box_scene(params=CornellBoxParams(blocks=True))
    elif args.scene == "cornell-smoke":
        scene, camera = cornell_box_scene(params=CornellBoxParams(blocks=True, smoke=True))
    elif args.scene == "three-spheres":
        scene, camera = three_spheres_scene()
    elif args.scene == "noise-spheres":
        scene, camera = noise_spheres_scene()
    else:
        checkered = args.scene == "checkered-spheres"
        scene, camera = random_spheres_scene(seed=args.seed, checkered_ground=checkered)

    settings = RenderSettings.from_aspect(
        args.width,
        camera.aspect_ratio,
        samples_per_pixel=args.samples,
        max_depth=args.depth,
        threads=get_thread_count(),
        seed=args.seed,
        sampling=args.sampling,
        batch_size=args.batch_size,
    )

    if not args.quiet:
        print(
            f"Rendering {args.scene} ({settings.width}x{settings.height}, "
            f"{len(scene)} primitives) with {settings.threads} threads..."
        )

    start_time = time.time()

    def progress_callback(current: int, target: int) -> None:
        if not args.quiet:
            elapsed = time.time() - start_time
            progress_pct = (current / target) * 100 if target > 0 else 0
            samples_per_sec = current / elapsed if elapsed > 0 else 0
            print(
                f"\r  Progress: {current}/{target} samples "
                f"({progress_pct:.1f}%) - {samples_per_sec:.1f} spp/s",
                end="",
                flush=True,
            )

    frame = Renderer(scene, camera, settings).render(progress=progress_callback)

    if not args.quiet:
        print()

    output_file = Path(args.output)
    save_image(frame, output_file)

    if not args.quiet:
        print(f"Saved to: {output_file.absolute()}")
        print(f"Total time: {time.time() - start_time:.2f}s")

    return output_file


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.WARNING if args.quiet else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    from pathtracer.runtime import init_taichi

    try:
        init_taichi(threads=args.threads)
        render_scene(args)
        return 0
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
