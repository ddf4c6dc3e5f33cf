#!/usr/bin/env python3
"""Render the random spheres scene under a sky gradient.

Usage:
    python -m examples.render_random_spheres [options]

Example:
    python -m examples.render_random_spheres --width 400 --height 225 --samples 32 --output spheres.ppm
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path

from pathtracer.config import RenderConfig, apply, init_taichi

logger = logging.getLogger("render_random_spheres")


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(description="Render the random spheres scene.")
    parser.add_argument("--width", type=int, default=384, help="Image width in pixels (default: 384)")
    parser.add_argument("--height", type=int, default=216, help="Image height in pixels (default: 216)")
    parser.add_argument("--samples", type=int, default=100, help="Number of samples per pixel (default: 100)")
    parser.add_argument("--max-depth", type=int, default=50, help="Maximum path segments per sample (default: 50)")
    parser.add_argument(
        "--output",
        type=str,
        default="random_spheres.png",
        help="Output file path, .png or .ppm (default: random_spheres.png)",
    )
    parser.add_argument("--batch-size", type=int, default=10, help="Samples per progress update (default: 10)")
    parser.add_argument("--arch", type=str, default="gpu", help="Preferred Taichi backend (default: gpu)")
    parser.add_argument("--seed", type=int, default=0, help="Seed for the sphere layout (default: 0)")
    parser.add_argument("--quiet", action="store_true", help="Only log warnings")
    return parser.parse_args()


def render_random_spheres(config: RenderConfig, output_path: str = "random_spheres.png") -> Path:
    """Render the random spheres scene with ``config`` and save it.

    Taichi must already be initialized.
    """
    from pathtracer.camera.thin_lens import setup_camera
    from pathtracer.core.progressive import ProgressiveRenderer
    from pathtracer.preview.export import save_png, save_ppm
    from pathtracer.scene.random_spheres import create_random_spheres_scene

    apply(config)
    scene, camera = create_random_spheres_scene(seed=config.seed, aspect_ratio=config.aspect_ratio)
    setup_camera(camera)
    logger.info("Built %d spheres", scene.get_sphere_count())

    renderer = ProgressiveRenderer(config.width, config.height)
    start_time = time.time()
    for current, target in renderer.render_progressive(config.samples_per_pixel, config.batch_size):
        logger.info("Progress: %d/%d samples (%.1fs)", current, target, time.time() - start_time)

    output_file = Path(output_path)
    if output_file.suffix.lower() == ".ppm":
        save_ppm(renderer, output_file)
    else:
        save_png(renderer, output_file, gamma=2.0)
    logger.info("Saved to %s", output_file.absolute())
    return output_file


def main() -> int:
    """Main entry point."""
    args = parse_args()
    logging.basicConfig(
        level=logging.WARNING if args.quiet else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = RenderConfig(
            width=args.width,
            height=args.height,
            samples_per_pixel=args.samples,
            batch_size=args.batch_size,
            max_depth=args.max_depth,
            sky_gradient=True,
            seed=args.seed,
            arch=args.arch,
        )
        init_taichi(config)
        render_random_spheres(config, args.output)
        return 0
    except ValueError as e:
        logger.error("%s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
