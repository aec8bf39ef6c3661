"""
Main entry point for the tilesmith build.
"""

import argparse
import logging
import sys
from concurrent.futures import ProcessPoolExecutor, as_completed
from multiprocessing import cpu_count, set_start_method
from pathlib import Path

from .atlas_packer import Atlas
from .build_worker import BuildOptions, convert_tiled_file
from .errors import TilesmithError
from .logging_config import get_logger, setup_logging, setup_worker_logging
from .sprite_extractor import load_sprites_from_directory
from .sprites import SpriteFilterPolicy
from .utils import find_tiled_files, save_json

# Set multiprocessing start method to 'spawn' for cross-platform compatibility
try:
    set_start_method('spawn', force=True)
except RuntimeError:
    pass


def convert_tiled_files(options: BuildOptions, max_workers: int, log_level: int = logging.WARNING):
    """
    Convert every Tiled file under the input directory in parallel.

    Returns:
        (outputs, failures): written JSON paths and (source, error) pairs
    """
    logger = get_logger('build')
    tasks = [(str(path), options) for path in find_tiled_files(options.input_dir)]
    if not tasks:
        logger.info("No Tiled files found")
        return [], []

    logger.info(f"Converting {len(tasks)} Tiled files with {max_workers} workers...")
    outputs = []
    failures = []

    with ProcessPoolExecutor(
        max_workers=max_workers,
        initializer=setup_worker_logging,
        initargs=(log_level,)
    ) as executor:
        future_to_file = {
            executor.submit(convert_tiled_file, task): task[0]
            for task in tasks
        }

        for future in as_completed(future_to_file):
            source = future_to_file[future]
            try:
                status, result_source, error_msg, output = future.result()
            except Exception as e:
                failures.append((source, str(e)))
                logger.error(f"  Error processing {source}: {e}")
                continue

            if status == "success":
                outputs.append(output)
            elif status == "skipped":
                logger.info(f"  Skipped {result_source}: {error_msg}")
            else:
                failures.append((result_source, error_msg))
                logger.error(f"  Failed to convert {result_source}: {error_msg}")

    return sorted(outputs), sorted(failures)


def pack_sprite_directory(sprites_dir: Path, output_dir: Path, atlas_name: str):
    """
    Pack a directory of PNG sprites into '<atlas_name>.png' and '.json'.

    Returns:
        (image_path, metadata_path, warnings)
    """
    policy = SpriteFilterPolicy()
    atlas = Atlas(policy)
    atlas.add_sprites(load_sprites_from_directory(sprites_dir, policy))
    image_path, metadata_path = atlas.save(output_dir, atlas_name)
    return image_path, metadata_path, atlas.warnings


def main():
    parser = argparse.ArgumentParser(
        description="Convert Tiled maps to JSON and pack sprites into a texture atlas"
    )
    parser.add_argument(
        "--input",
        required=True,
        help="Input directory containing .tmx/.tsx/.tx files"
    )
    parser.add_argument(
        "--output",
        required=True,
        help="Output directory for JSON files and the atlas"
    )
    parser.add_argument(
        "--sprites",
        default=None,
        help="Directory of PNG sprites to pack into an atlas"
    )
    parser.add_argument(
        "--atlas-name",
        default="atlas",
        help="Base file name of the atlas image and metadata (default: atlas)"
    )
    parser.add_argument(
        "--lenient",
        action="store_true",
        help="Skip schema validation of parsed Tiled documents"
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Number of worker processes (default: CPU count)"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Show detailed progress information"
    )
    parser.add_argument(
        "--debug", "-d",
        action="store_true",
        help="Show debug information (implies verbose)"
    )

    args = parser.parse_args()

    logger = setup_logging(args.verbose, args.debug)

    input_dir = Path(args.input).resolve()
    output_dir = Path(args.output).resolve()

    if not input_dir.exists():
        logger.error(f"Input directory does not exist: {input_dir}")
        sys.exit(1)

    logger.info(f"Input directory: {input_dir}")
    logger.info(f"Output directory: {output_dir}")
    output_dir.mkdir(parents=True, exist_ok=True)

    options = BuildOptions(str(input_dir), str(output_dir), strict=not args.lenient)
    max_workers = args.workers or cpu_count()
    outputs, failures = convert_tiled_files(options, max_workers, logger.level)

    atlas = None
    warnings = []
    if args.sprites:
        sprites_dir = Path(args.sprites).resolve()
        logger.info(f"Packing sprites from {sprites_dir}...")
        try:
            image_path, metadata_path, warnings = pack_sprite_directory(sprites_dir, output_dir, args.atlas_name)
            atlas = {'image': image_path.name, 'metadata': metadata_path.name}
        except (TilesmithError, OSError) as e:
            failures.append((str(sprites_dir), f"{type(e).__name__}: {e}"))
            logger.error(f"Failed to pack sprites: {e}")

    save_json({
        'tiled': [Path(output).relative_to(output_dir).as_posix() for output in outputs],
        'atlas': atlas,
        'warnings': warnings,
        'failures': [{'source': source, 'error': error} for source, error in failures],
    }, str(output_dir / "manifest.json"))

    logger.info(f"Converted {len(outputs)} Tiled files, {len(failures)} failed")
    if failures:
        sys.exit(1)

    logger.info("Build complete!")


if __name__ == "__main__":
    main()
