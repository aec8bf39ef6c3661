"""
Utility functions for tilesmith.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, List

from .logging_config import get_logger

logger = get_logger('utils')

TILED_EXTENSIONS = ('.tmx', '.tsx', '.tx')


def load_json(filepath: str) -> Dict[str, Any]:
    """Load a JSON file."""
    with open(filepath, 'r', encoding='utf-8') as f:
        return json.load(f)


def save_json(data: Dict[str, Any], filepath: str, indent: int = 2) -> None:
    """Save data to a JSON file."""
    directory = os.path.dirname(filepath)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(filepath, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=indent, ensure_ascii=False)


def read_text(filepath: str) -> str:
    """Read a UTF-8 text file."""
    with open(filepath, 'r', encoding='utf-8') as f:
        return f.read()


def find_tiled_files(input_dir: str) -> List[Path]:
    """
    Find every Tiled map, tileset and template file under input_dir.

    Returns:
        Paths sorted so repeated builds process files in the same order
    """
    root = Path(input_dir)
    if not root.exists():
        return []

    files = [
        path for path in root.rglob('*')
        if path.is_file() and path.suffix.lower() in TILED_EXTENSIONS
    ]
    logger.debug(f"Found {len(files)} Tiled files in {root}")
    return sorted(files)
