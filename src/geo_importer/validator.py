from __future__ import annotations

from pathlib import Path

from loguru import logger

from .errors import InputPathError


def resolve_input_files(path: str | Path) -> list[Path]:
    """Files to import: every entry of a directory (not recursive), or the file itself."""
    path = Path(path)
    if not path.exists():
        raise InputPathError(f"input path does not exist: {path}")
    if path.is_dir():
        try:
            files = sorted(path.iterdir())
        except OSError as exc:
            raise InputPathError(f"cannot list input directory {path}: {exc}") from exc
        logger.info("Found {count} input files in {path}", count=len(files), path=path)
        return files
    return [path]
