#!/usr/bin/env python3
"""Render the Cornell box scene.

Builds the Cornell box, points the thin-lens camera into it and accumulates
samples progressively, logging progress after each batch.

Usage:
    python -m examples.render_cornell_box [options]

Options:
    --size SIZE         Image width and height in pixels (default: 512)
    --samples SAMPLES   Number of samples per pixel (default: 100)
    --max-depth DEPTH   Maximum path segments per sample (default: 50)
    --output OUTPUT     Output file path, .png or .ppm (default: cornell_box.png)
    --batch-size SIZE   Samples per progress update (default: 10)
    --arch ARCH         Preferred Taichi backend (default: gpu)
    --seed SEED         Random seed (default: 0)
    --quiet             Only log warnings

Example:
    python -m examples.render_cornell_box --size 256 --samples 50
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path

from pathtracer.config import RenderConfig, apply, init_taichi

logger = logging.getLogger("render_cornell_box")


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Render the Cornell box scene.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--size", type=int, default=512, help="Image width and height in pixels (default: 512)")
    parser.add_argument("--samples", type=int, default=100, help="Number of samples per pixel (default: 100)")
    parser.add_argument("--max-depth", type=int, default=50, help="Maximum path segments per sample (default: 50)")
    parser.add_argument(
        "--output",
        type=str,
        default="cornell_box.png",
        help="Output file path, .png or .ppm (default: cornell_box.png)",
    )
    parser.add_argument("--batch-size", type=int, default=10, help="Samples per progress update (default: 10)")
    parser.add_argument("--arch", type=str, default="gpu", help="Preferred Taichi backend (default: gpu)")
    parser.add_argument("--seed", type=int, default=0, help="Random seed (default: 0)")
    parser.add_argument("--quiet", action="store_true", help="Only log warnings")
    return parser.parse_args()


def render_cornell_box(config: RenderConfig, output_path: str = "cornell_box.png") -> Path:
    """Render the Cornell box with ``config`` and save it.

    Taichi must already be initialized.

    Returns:
        Path to the saved image file.
    """
    # Field-declaring modules load after ti.init
    from pathtracer.camera.thin_lens import setup_camera
    from pathtracer.core.progressive import ProgressiveRenderer
    from pathtracer.preview.export import save_png, save_ppm
    from pathtracer.scene.cornell_box import create_cornell_box_scene

    apply(config)
    logger.info("Creating Cornell box scene (%dx%d)", config.width, config.height)
    scene, camera, _ = create_cornell_box_scene(seed=config.seed)
    camera.aspect_ratio = config.aspect_ratio
    setup_camera(camera)
    logger.info(
        "Scene: %d primitives, %d lights", scene.get_primitive_count(), scene.get_light_count()
    )

    renderer = ProgressiveRenderer(config.width, config.height)
    start_time = time.time()

    def progress_callback(current: int, target: int) -> None:
        elapsed = time.time() - start_time
        samples_per_sec = current / elapsed if elapsed > 0 else 0.0
        logger.info(
            "Progress: %d/%d samples (%.1f%%) - %.1f spp/s",
            current,
            target,
            100.0 * current / target,
            samples_per_sec,
        )

    logger.info("Rendering %d samples per pixel", config.samples_per_pixel)
    renderer.render(
        num_samples=config.samples_per_pixel,
        batch_size=config.batch_size,
        callback=progress_callback,
    )

    output_file = Path(output_path)
    if output_file.suffix.lower() == ".ppm":
        save_ppm(renderer, output_file)
    else:
        save_png(renderer, output_file, tone_map="reinhard", gamma=2.2)

    logger.info("Saved to %s in %.2fs", output_file.absolute(), time.time() - start_time)
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
            width=args.size,
            height=args.size,
            samples_per_pixel=args.samples,
            batch_size=args.batch_size,
            max_depth=args.max_depth,
            seed=args.seed,
            arch=args.arch,
        )
        init_taichi(config)
        render_cornell_box(config, args.output)
        return 0
    except ValueError as e:
        logger.error("%s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
