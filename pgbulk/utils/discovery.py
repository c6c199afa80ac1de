"""
Input file discovery.
"""
import logging
from pathlib import Path
from typing import List, Optional


def discover_files(
    base_path: str, pattern: str = "*", logger: Optional[logging.Logger] = None
) -> List[str]:
    """
    Return the absolute paths of regular files under ``base_path`` matching
    the glob ``pattern`` (``**`` recurses), sorted for a stable order.
    """
    logger = logger or logging.getLogger(__name__)
    base = Path(base_path).resolve()
    if not base.is_dir():
        raise FileNotFoundError(f"Directory not found: {base}")

    files = sorted(str(p) for p in base.glob(pattern or "*") if p.is_file())
    logger.debug(f"[Discovery] {len(files)} file(s) matched {pattern!r} in {base}")
    return files
