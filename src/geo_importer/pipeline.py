from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from loguru import logger
from pydantic import ValidationError

from .builder import AddressBuilder
from .config import DEFAULT_BATCH_SIZE, ImportConfig, IndexSettings, RuntimeConfig, default_thread_count
from .errors import ConfigError, RegionLookupAbsent
from .indexers import CoordinateIndex
from .models import Addr, AdministrativeRegion
from .reader import ParseStats, read_records
from .validator import resolve_input_files
from .writers import IndexWriter


@dataclass
class FileReport:
    path: Path
    imported: int = 0
    skipped: int = 0


@dataclass
class ImportSummary:
    index: str
    files: list[FileReport] = field(default_factory=list)

    @property
    def imported(self) -> int:
        return sum(report.imported for report in self.files)

    @property
    def skipped(self) -> int:
        return sum(report.skipped for report in self.files)


class ImportPipeline:
    def __init__(self, config: ImportConfig, writer: IndexWriter) -> None:
        self.config = config
        self.writer = writer
        self.coordinate_index: Optional[CoordinateIndex] = None
        self.builder: Optional[AddressBuilder] = None

    def load(self) -> None:
        regions = self._fetch_regions()
        self.coordinate_index = CoordinateIndex.build(regions)
        self.builder = AddressBuilder(self.coordinate_index, self.config.legacy_identity_mode)

    def run(self) -> ImportSummary:
        files = resolve_input_files(self.config.input)
        if not files:
            logger.warning("No input file found in {path}", path=self.config.input)
        self.load()
        index = self.writer.create_index(self.config.dataset, self.config.index)
        summary = ImportSummary(index=index, files=self.import_files(files, index))
        self.writer.publish_index(self.config.dataset, index)
        logger.info(
            "Imported {imported} addresses from {count} files into {index} ({skipped} records skipped)",
            imported=summary.imported,
            count=len(summary.files),
            index=index,
            skipped=summary.skipped,
        )
        return summary

    def import_files(self, files: list[Path], index: str) -> list[FileReport]:
        if self.builder is None:
            raise RuntimeError("load() must be called before importing files")
        workers = self.config.runtime.workers
        reports: list[FileReport] = []
        if workers <= 1:
            for path in files:
                reports.append(self.import_file(path, index))
            return reports
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="importer") as executor:
            future_map: dict[Future[FileReport], Path] = {
                executor.submit(self.import_file, path, index): path for path in files
            }
            try:
                for future in as_completed(future_map):
                    reports.append(future.result())
            except BaseException:
                for future in future_map:
                    future.cancel()
                raise
        reports.sort(key=lambda report: report.path)
        return reports

    def import_file(self, path: Path, index: str) -> FileReport:
        assert self.builder is not None
        batch_size = self.config.runtime.batch_size
        stats = ParseStats()
        report = FileReport(path=path)
        batch: list[Addr] = []
        logger.info("Importing {path}", path=path)
        for record in read_records(path, stats=stats):
            batch.append(self.builder(record))
            if len(batch) >= batch_size:
                report.imported += self.writer.submit_batch(index, batch)
                batch = []
        if batch:
            report.imported += self.writer.submit_batch(index, batch)
        report.skipped = stats.skipped
        logger.info(
            "{path}: {imported} addresses imported, {skipped} records skipped",
            path=path,
            imported=report.imported,
            skipped=report.skipped,
        )
        return report

    def _fetch_regions(self) -> list[AdministrativeRegion]:
        dataset = self.config.dataset
        try:
            regions = self.writer.get_admins_for_dataset(dataset)
        except RegionLookupAbsent as exc:
            logger.info(
                "Administrative regions not found for dataset {dataset}, addresses will not be weighted ({err})",
                dataset=dataset,
                err=exc,
            )
            return []
        if not regions:
            logger.info("No administrative region indexed for dataset {dataset}", dataset=dataset)
        return regions


def run_import(
    writer: IndexWriter,
    dataset: str,
    index_settings: IndexSettings,
    input_path: str | Path,
    thread_count: Optional[int] = None,
    legacy_identity_mode: bool = False,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> ImportSummary:
    workers = default_thread_count() if thread_count is None else thread_count
    try:
        config = ImportConfig(
            input=Path(input_path),
            dataset=dataset,
            legacy_identity_mode=legacy_identity_mode,
            index=index_settings,
            runtime=RuntimeConfig(workers=workers, batch_size=batch_size),
        )
    except ValidationError as exc:
        raise ConfigError(f"invalid import settings: {exc}") from exc
    return ImportPipeline(config, writer).run()
