"""
Worker function for parallel Tiled file conversion.
This module exists separately so it can be properly pickled for multiprocessing.
"""

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class BuildOptions:
    """Settings shared by every worker in one build."""
    input_dir: str
    output_dir: str
    strict: bool = True


def output_path_for(source: Path, options: BuildOptions) -> Path:
    """'<input>/maps/town.tmx' -> '<output>/maps/town.json'."""
    relative = Path(source).resolve().relative_to(Path(options.input_dir).resolve())
    return Path(options.output_dir) / relative.with_suffix('.json')


def convert_tiled_file(args_tuple):
    """Convert a single Tiled file - designed for parallel execution."""
    source, options = args_tuple
    source = Path(source)

    from .errors import TilesmithError
    from .logging_config import get_logger
    from .tmx_parser import TiledParser
    from .utils import read_text, save_json

    logger = get_logger('build_worker')

    try:
        parser = TiledParser()
        xml_text = read_text(str(source))
        suffix = source.suffix.lower()

        if suffix == '.tmx':
            document = parser.parse_map(xml_text, strict=options.strict)
        elif suffix == '.tsx':
            document = parser.parse_external_tileset(xml_text, strict=options.strict)
        elif suffix == '.tx':
            document = parser.parse_external_template(xml_text, strict=options.strict)
        else:
            return ("skipped", str(source), f"Unsupported file type '{source.suffix}'", None)

        target = output_path_for(source, options)
        save_json(document, str(target))
        logger.debug(f"Converted {source} -> {target}")
        return ("success", str(source), None, str(target))

    except (TilesmithError, OSError, ValueError) as e:
        return ("error", str(source), f"{type(e).__name__}: {e}", None)
