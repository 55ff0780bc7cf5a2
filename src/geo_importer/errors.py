from __future__ import annotations


class GeoImportError(Exception):
    ...


class ConfigError(GeoImportError):
    ...


class InputPathError(GeoImportError):
    ...


class RecordParseError(GeoImportError):
    def __init__(self, message: str, line: int | None = None) -> None:
        super().__init__(message)
        self.line = line


class RegionLookupAbsent(GeoImportError):
    ...


class IndexConnectivityError(GeoImportError):
    ...


class IndexWriteError(GeoImportError):
    ...


class DecodeError(GeoImportError):
    ...
