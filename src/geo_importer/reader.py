from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator, Mapping

import pandas as pd
from loguru import logger
from pydantic import ValidationError

from .errors import InputPathError, RecordParseError
from .models import RawAddressRecord

FIELDS = ("ID", "STREET", "POSTCODE", "DISTRICT", "REGION", "CITY", "NUMBER", "UNIT", "LAT", "LON")
DEFAULT_CHUNK_SIZE = 10_000
# stands in for a line with more fields than the header, so it keeps its row position
TOO_MANY_FIELDS = "\x00too-many-fields"


@dataclass
class ParseStats:
    rows: int = 0
    skipped: int = 0


def parse_record(row: Mapping[str, Any], line: int | None = None) -> RawAddressRecord:
    """Validate one CSV row; empty cells are kept, absent ones (NaN) are missing."""
    values: dict[str, str] = {}
    for key, value in row.items():
        name = str(key).strip().upper()
        if name in FIELDS and isinstance(value, str):
            values[name.lower()] = value
    try:
        return RawAddressRecord(**values)
    except ValidationError as exc:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in exc.errors())
        raise RecordParseError(f"invalid address record ({fields})", line=line) from exc


def read_records(
    path: str | Path,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    stats: ParseStats | None = None,
) -> Iterator[RawAddressRecord]:
    """Yield the valid records of one OpenAddresses CSV file.

    Lines with too many or too few fields and rows that fail validation
    are logged with their row number and skipped.
    Raises InputPathError when the file cannot be opened or decoded.
    """
    path = Path(path)
    stats = stats if stats is not None else ParseStats()

    def on_bad_line(bad_line: list[str]) -> list[str]:
        return [TOO_MANY_FIELDS]

    try:
        reader = pd.read_csv(
            path,
            dtype=str,
            keep_default_na=False,
            encoding="utf-8-sig",
            compression="infer",
            engine="python",
            on_bad_lines=on_bad_line,
            chunksize=chunk_size,
        )
    except pd.errors.EmptyDataError:
        logger.warning("Input file {path} is empty", path=path)
        return
    except (OSError, UnicodeDecodeError) as exc:
        raise InputPathError(f"cannot open input file {path}: {exc}") from exc

    row_number = 0
    with reader:
        try:
            for chunk in reader:
                for row in chunk.to_dict(orient="records"):
                    row_number += 1
                    stats.rows += 1
                    if TOO_MANY_FIELDS in row.values():
                        stats.skipped += 1
                        logger.warning(
                            "Skipping record {row} of {path}: more fields than the header", row=row_number, path=path
                        )
                        continue
                    try:
                        yield parse_record(row, line=row_number)
                    except RecordParseError as exc:
                        stats.skipped += 1
                        logger.warning("Skipping record {row} of {path}: {err}", row=row_number, path=path, err=exc)
        except (pd.errors.ParserError, UnicodeDecodeError) as exc:
            raise InputPathError(f"cannot decode input file {path}: {exc}") from exc
