"""
Command-line interface for the reconstruction codec.

Usage:
    sfm-codec info PATH [--config CONFIG]
    sfm-codec convert INPUT OUTPUT [--config CONFIG]
"""

import argparse
import logging
import sys
from typing import Optional

from .config import CodecConfig
from .diagnostics import ModelFormatError, UnsupportedFormatError
from .dispatcher import load_scene, write_scene


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stdout)]
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Inspect and convert sparse reconstructions',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog='''
Examples:
    # Print a summary of a binary model
    sfm-codec info sparse/0/points3D.bin

    # Convert binary to text (cameras.txt and images.txt are written too)
    sfm-codec convert sparse/0/points3D.bin text/points3D.txt

    # Export only the point cloud
    sfm-codec convert sparse/0/points3D.bin cloud.ply
'''
    )

    parser.add_argument(
        '--config', '-c',
        type=str,
        default=None,
        help='Path to YAML configuration file'
    )

    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose output'
    )

    subparsers = parser.add_subparsers(dest='command', required=True)

    info = subparsers.add_parser('info', help='Print scene statistics')
    info.add_argument('path', type=str, help='Points file or point list')

    convert = subparsers.add_parser('convert', help='Load a scene and write it in another format')
    convert.add_argument('input', type=str, help='Input points file or point list')
    convert.add_argument('output', type=str, help='Output path; format follows the extension')

    return parser


def print_summary(path: str, stats: dict, base_path: str, is_fallback: bool) -> None:
    print("\n" + "=" * 60)
    print(f"SCENE SUMMARY: {path}")
    print("=" * 60)
    print(f"Points:                 {stats['num_points']}")
    print(f"Points with metadata:   {stats['num_metadata']}")
    print(f"Track observations:     {stats['num_observations']}")
    print(f"Cameras:                {stats['num_cameras']}")
    print(f"Images:                 {stats['num_images']}")
    print(f"2D features:            {stats['num_features']}")
    print(f"Image directory:        {base_path}{' (fallback)' if is_fallback else ''}")
    print("=" * 60)


def main(argv: Optional[list] = None) -> int:
    """Main entry point for CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(args.verbose)
    logger = logging.getLogger(__name__)

    try:
        config = CodecConfig.from_yaml(args.config) if args.config else CodecConfig()

        if args.command == 'info':
            result = load_scene(args.path, config)
            scene = result.scene
            print_summary(
                args.path,
                scene.statistics(),
                scene.image_base_path,
                scene.image_base_is_fallback,
            )
            for diagnostic in result.diagnostics.warnings:
                print(f"warning: {diagnostic}")
            return 0

        result = load_scene(args.input, config)
        report = write_scene(args.output, result.scene, config)
        logger.info(
            f"Wrote {report.points_written} points "
            f"({report.points_dropped} deleted) to {', '.join(report.paths)}"
        )
        return 0

    except FileNotFoundError as e:
        logger.error(f"File not found: {e}")
        return 1
    except UnsupportedFormatError as e:
        logger.error(f"Configuration error: {e}")
        return 1
    except ModelFormatError as e:
        logger.error(f"Malformed file: {e}")
        return 1
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        return 1


if __name__ == '__main__':
    sys.exit(main())
