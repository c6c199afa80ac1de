"""
File system helpers.
"""
import logging
from os import remove, scandir, path
from shutil import rmtree

logger = logging.getLogger(__name__)


def clear_latest_items(dir_path: str, n_to_keep: int) -> None:
    """
    Remove items (files or folders) in ``dir_path``, keeping only the
    ``n_to_keep`` most recently modified ones.

    Raises:
        FileNotFoundError: If ``dir_path`` does not exist.
        OSError: If the directory cannot be scanned.
    """
    if not path.exists(dir_path):
        raise FileNotFoundError(f"Path not found: {dir_path}")

    try:
        all_items = sorted(scandir(dir_path), key=lambda entry: entry.stat().st_mtime)
    except OSError as e:
        raise OSError(f"Error scanning directory {dir_path}: {e}") from e

    num_items_to_delete = len(all_items) - n_to_keep

    for item_to_delete in all_items[:max(num_items_to_delete, 0)]:
        try:
            if item_to_delete.is_file() or item_to_delete.is_symlink():
                remove(item_to_delete.path)
            elif item_to_delete.is_dir():
                rmtree(item_to_delete.path)
        except OSError as e:
            logger.warning(f"Error deleting item {item_to_delete.path}: {e}")
