#!/usr/bin/env python3
"""
Command-line front end for perceptualdiff.
Loads images with Pillow, optionally down-samples them, runs the comparison
and writes the difference image and a JSON report when asked.

Exit codes: 0 images pass, 1 images are visibly different, 2 usage or I/O error.
"""

import argparse
import json
import logging
import os
import sys
import time
from dataclasses import asdict, replace
from datetime import datetime, timezone
from typing import List, Optional

import numba
import numpy as np
from PIL import Image, UnidentifiedImageError

from .core import (
    ConfigError,
    ImageError,
    PerceptualDiff,
    PerceptualDiffConfig,
    PerceptualDiffError,
    Verdict,
    VERSION,
    make_diff_mask,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

EXIT_PASS = 0
EXIT_FAIL = 1
EXIT_ERROR = 2


def load_image(path: str) -> Image.Image:
    """Open an image file as 8-bit RGB"""
    try:
        with Image.open(path) as img:
            return img.convert('RGB')
    except FileNotFoundError as e:
        raise ImageError(f"Image file not found: {path}") from e
    except (UnidentifiedImageError, OSError) as e:
        raise ImageError(f"Failed to read image {path}: {e}") from e


def downsample(img: Image.Image, powers: int) -> Image.Image:
    """Shrink by 2**powers with bilinear filtering"""
    if powers <= 0:
        return img
    scale = 1.0 / (1 << powers)
    logger.debug(f"Scaling by {scale}")
    size = (max(1, img.width >> powers), max(1, img.height >> powers))
    return img.resize(size, Image.Resampling.BILINEAR)


def save_diff_mask(diff_mask: np.ndarray, path: str):
    """Write an RGBA difference mask; the format follows the file extension (png if none)"""
    fmt = None if os.path.splitext(path)[1] else 'PNG'
    try:
        Image.fromarray(diff_mask).save(path, format=fmt)
    except (OSError, ValueError, KeyError) as e:
        raise ImageError(f"Could not write difference image to {path}: {e}") from e
    logger.info(f"Wrote difference image to {path}")


def compare_files(path_a: str, path_b: str, config: Optional[PerceptualDiffConfig] = None,
                  downsample_powers: int = 0, output: Optional[str] = None) -> Verdict:
    """
    Convenience function to compare two image files

    Args:
        path_a: Path to the first image
        path_b: Path to the second image
        config: Optional PerceptualDiffConfig
        downsample_powers: Shrink both images by 2**n before comparing
        output: Optional path for the difference image

    Returns:
        Verdict for the pair

    Example:
        >>> verdict = compare_files('render.png', 'reference.png')
        >>> print("PASS" if verdict else "FAIL")
    """
    img_a = downsample(load_image(path_a), downsample_powers)
    img_b = downsample(load_image(path_b), downsample_powers)

    diff_mask = None
    if output and img_a.size == img_b.size:
        diff_mask = make_diff_mask(*img_a.size)

    verdict = PerceptualDiff(config).compare(img_a, img_b, diff_mask)

    if output:
        if diff_mask is None:
            logger.warning(f"Not writing {output}: image dimensions do not match")
        else:
            save_diff_mask(diff_mask, output)
    return verdict


class PerceptualDiffCLI:
    """Command-line interface for perceptualdiff"""

    def __init__(self):
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(
            prog='perceptualdiff',
            description='Compares two images using a perceptually based image metric',
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog='Input and output files can be in any format Pillow supports.'
        )
        parser.add_argument('--version', action='version', version=f'perceptualdiff v{VERSION}')

        subparsers = parser.add_subparsers(dest='command', help='Available commands')

        cmp_parser = subparsers.add_parser('compare', help='Compare an image pair or a batch of pairs')
        cmp_parser.add_argument('images', nargs='*', metavar='IMAGE', help='Two images to compare')
        cmp_parser.add_argument('--batch', help='Path to JSON list of {"image_a": path, "image_b": path}')
        cmp_parser.add_argument('--out', help='Output directory for batch reports and difference images')
        cmp_parser.add_argument('--fov', type=float, metavar='DEG', help='Field of view in degrees (0.1 to 89.9)')
        cmp_parser.add_argument('--threshold', type=int, metavar='P', help='Number of pixels P below which differences are ignored')
        cmp_parser.add_argument('--fail-fast', action='store_true', help='Stop as soon as the threshold is reached')
        cmp_parser.add_argument('--gamma', type=float, metavar='G', help='Value to convert rgb into linear space (default 2.2)')
        cmp_parser.add_argument('--luminance', type=float, metavar='L', help='White luminance (default 100.0 cd/m^2)')
        cmp_parser.add_argument('--luminance-only', action='store_true', help='Only consider luminance; ignore chroma (color)')
        cmp_parser.add_argument('--color-factor', type=float, metavar='F', help='How much of color to use, 0.0 to 1.0, 0.0 = ignore color')
        cmp_parser.add_argument('--downsample', type=int, default=0, metavar='N', help='How many powers of two to down sample the images')
        cmp_parser.add_argument('--output', metavar='FILE', help='Write difference image to FILE')
        cmp_parser.add_argument('--report', metavar='FILE', help='Write JSON verification report to FILE')
        cmp_parser.add_argument('--config', help='Path to configuration file')
        cmp_parser.add_argument('--threads', type=int, help='Number of worker threads for the pixel test')
        cmp_parser.add_argument('--verbose', action='store_true', help='Enable verbose logging')

        config_parser = subparsers.add_parser('config', help='Generate default configuration file')
        config_parser.add_argument('--out', required=True, help='Output path for configuration file')

        return parser

    def run(self, args: Optional[List[str]] = None) -> int:
        try:
            args = self.parser.parse_args(args)
        except SystemExit as e:
            # --help and --version exit with 0
            return EXIT_PASS if e.code == 0 else EXIT_ERROR

        if not args.command:
            self.parser.print_help()
            return EXIT_ERROR

        if getattr(args, 'verbose', False):
            logging.getLogger().setLevel(logging.DEBUG)

        try:
            if args.command == 'compare':
                return self._compare(args)
            elif args.command == 'config':
                return self._generate_config(args)
        except (PerceptualDiffError, OSError) as e:
            logger.error(f"Error: {e}")
            return EXIT_ERROR
        return EXIT_ERROR

    def _build_config(self, args) -> PerceptualDiffConfig:
        config = PerceptualDiffConfig.from_json(args.config) if args.config else PerceptualDiffConfig()
        overrides = {
            'color_factor': args.color_factor,
            'field_of_view': args.fov,
            'gamma': args.gamma,
            'luminance': args.luminance,
            'threshold_pixels': args.threshold,
        }
        overrides = {k: v for k, v in overrides.items() if v is not None}
        if args.luminance_only:
            overrides['luminance_only'] = True
        if args.fail_fast:
            overrides['fail_fast'] = True
        return replace(config, **overrides).validate()

    def _compare(self, args) -> int:
        config = self._build_config(args)
        if args.verbose:
            config.dump()
        if args.downsample < 0:
            raise ConfigError(f"Downsample must not be negative, got {args.downsample}")
        if args.threads is not None:
            if args.threads < 1:
                raise ConfigError(f"Thread count must be positive, got {args.threads}")
            numba.set_num_threads(min(args.threads, numba.config.NUMBA_NUM_THREADS))

        if args.batch:
            if not args.out:
                raise ConfigError("--batch requires --out")
            return self._compare_batch(args, config)
        if len(args.images) < 2:
            raise ConfigError("Not enough image files specified")
        if len(args.images) > 2:
            raise ConfigError("Too many image files specified")

        path_a, path_b = args.images
        verdict = self._compare_pair(path_a, path_b, config, args.downsample, args.output)
        if args.report:
            self._write_report(args.report, path_a, path_b, config, verdict)
        print("PASS" if verdict.passed else "FAIL")
        return EXIT_PASS if verdict.passed else EXIT_FAIL

    def _compare_pair(self, path_a: str, path_b: str, config: PerceptualDiffConfig,
                      downsample_powers: int, output: Optional[str]) -> Verdict:
        logger.info(f"Comparing {path_a} against {path_b}")
        start_time = time.time()
        verdict = compare_files(path_a, path_b, config, downsample_powers, output)
        elapsed = time.time() - start_time
        if verdict.passed:
            logger.info(f"{verdict.report()} (took {elapsed:.2f}s)")
        else:
            logger.warning(f"{verdict.report()} (took {elapsed:.2f}s)")
        return verdict

    def _compare_batch(self, args, config: PerceptualDiffConfig) -> int:
        try:
            with open(args.batch, 'r') as f:
                batch_list = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(f"Failed to load batch list from {args.batch}: {e}") from e
        if not isinstance(batch_list, list):
            raise ConfigError(f"Batch file {args.batch} must hold a JSON list of image pairs")
        os.makedirs(args.out, exist_ok=True)

        all_passed = True
        for i, item in enumerate(batch_list):
            try:
                path_a, path_b = item['image_a'], item['image_b']
            except (KeyError, TypeError) as e:
                raise ConfigError(f"Batch entry {i} needs 'image_a' and 'image_b'") from e
            name = item.get('name') or f"pair_{i:03d}"
            output = os.path.join(args.out, f"{name}_diff.png") if args.output else None
            verdict = self._compare_pair(path_a, path_b, config, args.downsample, output)
            self._write_report(os.path.join(args.out, f"{name}_report.json"), path_a, path_b, config, verdict)
            print(f"{name}: {'PASS' if verdict.passed else 'FAIL'}")
            all_passed = all_passed and verdict.passed
        return EXIT_PASS if all_passed else EXIT_FAIL

    @staticmethod
    def _write_report(path: str, path_a: str, path_b: str, config: PerceptualDiffConfig, verdict: Verdict):
        report = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'version': VERSION,
            'image_a': path_a,
            'image_b': path_b,
            'config': asdict(config),
            **verdict.to_dict(),
        }
        with open(path, 'w') as f:
            json.dump(report, f, indent=2)
        logger.info(f"Report saved to {path}")

    def _generate_config(self, args) -> int:
        config = PerceptualDiffConfig()
        config.to_json(args.out)
        logger.info(f"Default configuration saved to {args.out}")
        return EXIT_PASS


def main():
    cli = PerceptualDiffCLI()
    sys.exit(cli.run())


if __name__ == '__main__':
    main()
