#!/usr/bin/env python3
"""Render a scene with photon-mapped indirect light.

Renders the built-in Cornell box (optionally with a lightning bolt) or a
scene loaded from JSON, and writes a PNG or PPM image.

Usage:
    python -m examples.render_scene [options]

Example:
    python -m examples.render_scene --width 200 --height 200 --photons 20000 \\
        --collect 100 --shadow-samples 4 --indirect --lightning --tone-map reinhard -o storm.png
"""

from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import sys
import time
from pathlib import Path

import taichi as ti

logger = logging.getLogger("examples.render_scene")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Render a scene with photon mapping.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--width", type=int, default=100, help="Image width in pixels")
    parser.add_argument("--height", type=int, default=100, help="Image height in pixels")
    parser.add_argument("--samples", type=int, default=1, help="Jittered samples per pixel")
    parser.add_argument("--photons", type=int, default=10000, help="Photons to shoot")
    parser.add_argument("--collect", type=int, default=100, help="Photons per gather estimate")
    parser.add_argument("--bounces", type=int, default=0, help="Reflection bounces")
    parser.add_argument("--photon-bounces", type=int, default=10, help="Maximum photon bounces")
    parser.add_argument("--shadow-samples", type=int, default=0, help="Shadow rays per light")
    parser.add_argument(
        "--indirect",
        action="store_true",
        help="Gather indirect light from the photon map",
    )
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    parser.add_argument("--scene", type=Path, default=None, help="Scene JSON file")
    parser.add_argument(
        "--lightning",
        action="store_true",
        help="Add a lightning bolt to the built-in Cornell box",
    )
    parser.add_argument(
        "--tone-map",
        default="none",
        choices=["none", "reinhard", "exposure"],
        help="Tone curve applied before sRGB encoding",
    )
    parser.add_argument("--exposure", type=float, default=1.0, help="Scale for the exposure tone curve")
    parser.add_argument("--preview", action="store_true", help="Show the render in a Matplotlib window")
    parser.add_argument(
        "--show-photons",
        action="store_true",
        help="Plot the photon map and KD-tree leaves after rendering",
    )
    parser.add_argument("-o", "--output", type=Path, default=Path("out.png"), help="Output image")
    parser.add_argument("--cpu", action="store_true", help="Force the Taichi CPU backend")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace):
    """RenderConfig from parsed arguments."""
    from src.stormlight.config import RenderConfig

    return RenderConfig(
        width=args.width,
        height=args.height,
        samples_per_pixel=args.samples,
        num_photons_to_shoot=args.photons,
        num_photons_to_collect=args.collect,
        num_bounces=args.bounces,
        num_photon_bounces=args.photon_bounces,
        num_shadow_samples=args.shadow_samples,
        gather_indirect=args.indirect,
        tone_map=args.tone_map,
        exposure=args.exposure,
        seed=args.seed,
    )


def default_camera(scene, aspect_ratio: float):
    """Camera in front of the scene's bounding box, looking toward +Z."""
    from src.stormlight.camera.pinhole import PinholeCamera

    box = scene.bounding_box()
    center = box.center
    distance = 1.5 * box.max_dim()
    return PinholeCamera(
        lookfrom=(float(center[0]), float(center[1]), float(box.min[2] - distance)),
        lookat=tuple(float(c) for c in center),
        vup=(0.0, 1.0, 0.0),
        vfov=40.0,
        aspect_ratio=aspect_ratio,
    )


def load_scene(args: argparse.Namespace, aspect_ratio: float):
    """Scene and camera from a JSON file or the built-in Cornell box.

    A scene file may carry an optional "camera" entry in the format of
    ``PinholeCamera.to_dict``.
    """
    from src.stormlight.camera.pinhole import PinholeCamera
    from src.stormlight.scene.cornell_box import CornellBoxParams, create_cornell_box_scene
    from src.stormlight.scene.manager import SceneManager

    if args.scene is None:
        scene, camera = create_cornell_box_scene(params=CornellBoxParams(lightning=args.lightning))
        return scene, dataclasses.replace(camera, aspect_ratio=aspect_ratio)

    with open(args.scene) as f:
        data = json.load(f)
    scene = SceneManager()
    scene.from_dict(data)
    if "camera" in data:
        camera = PinholeCamera.from_dict({**data["camera"], "aspect_ratio": aspect_ratio})
    else:
        camera = default_camera(scene, aspect_ratio)
    return scene, camera


def render(args: argparse.Namespace) -> Path:
    """Render according to parsed arguments and save the image."""
    from src.stormlight.core.progressive import ProgressiveRenderer

    config = build_config(args)
    scene, camera = load_scene(args, config.aspect_ratio)
    logger.info(
        "Scene: %d materials, %d quads, %d spheres, %d lightning segments",
        scene.get_material_count(),
        scene.get_quad_count(),
        scene.get_sphere_count(),
        len(scene.line_lights),
    )

    renderer = ProgressiveRenderer(scene, config, camera)
    start_time = time.time()

    if config.gather_indirect:
        kdtree = renderer.trace_photons()
        logger.info("Photon map holds %d photons (%.2fs)", len(kdtree), time.time() - start_time)

    def progress_callback(current: int, target: int) -> None:
        elapsed = time.time() - start_time
        logger.info("Sample %d/%d (%.1fs elapsed)", current, target, elapsed)

    renderer.render(callback=progress_callback)
    renderer.save_image(args.output)
    logger.info("Saved %s in %.2fs", args.output, time.time() - start_time)

    if args.show_photons:
        from src.stormlight.preview.debug import plot_photon_map

        kdtree = renderer.photon_mapping.kdtree
        if kdtree is None:
            kdtree = renderer.trace_photons()
        plot_photon_map(kdtree, energy_scale=config.num_photons_to_shoot, block=not args.preview)
    if args.preview:
        from src.stormlight.preview.display import show_preview

        show_preview(renderer)
    return args.output


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    from src.stormlight.logging_config import setup_logging

    setup_logging("src.stormlight", args.log_level)
    setup_logging("examples", args.log_level)

    ti.init(arch=ti.cpu if args.cpu else ti.gpu)

    try:
        render(args)
        return 0
    except (ValueError, RuntimeError, OSError) as e:
        logger.error("Render failed: %s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
