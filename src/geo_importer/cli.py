from __future__ import annotations

import argparse
from pathlib import Path
from typing import Any, Optional, Sequence

from loguru import logger

from .config import DEFAULT_CONNECTION_STRING, DEFAULT_DATASET, ImportConfig, load_config
from .errors import GeoImportError
from .log import setup_logging
from .pipeline import ImportPipeline
from .writers import ElasticsearchIndexWriter


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="geo-import",
        description="Import OpenAddresses CSV files into the geocoding index",
    )
    parser.add_argument("-i", "--input", type=Path, help="OpenAddresses file or directory of files")
    parser.add_argument(
        "-c",
        "--connection-string",
        help=f"Elasticsearch url and index root (default: {DEFAULT_CONNECTION_STRING})",
    )
    parser.add_argument("-d", "--dataset", help=f"name of the dataset (default: {DEFAULT_DATASET})")
    parser.add_argument("-C", "--city-level", help="deprecated, has no effect")
    parser.add_argument("-t", "--nb-threads", type=int, help="number of worker threads (default: number of CPUs)")
    parser.add_argument("-s", "--nb-shards", type=int, help="number of shards of the index (default: 5)")
    parser.add_argument("-r", "--nb-replicas", type=int, help="number of replicas of the index (default: 1)")
    parser.add_argument(
        "--use-old-index-format",
        action="store_true",
        default=None,
        help=(
            "do not use the house number in address ids; addresses sharing a position overwrite each other. "
            "Coordinates in ids are rendered the Python way (2.0, 1e-05), not as 2 or 0.00001, "
            "so ids will not match indexes written by tools using the shorter form"
        ),
    )
    parser.add_argument("--batch-size", type=int, help="documents per bulk request (default: 1000)")
    parser.add_argument("--config", type=Path, help="YAML file with the same settings")
    parser.add_argument("--log-level", help="log level (default: INFO)")
    return parser


def config_from_args(args: argparse.Namespace) -> ImportConfig:
    overrides: dict[str, Any] = {
        "input": args.input,
        "connection_string": args.connection_string,
        "dataset": args.dataset,
        "legacy_identity_mode": args.use_old_index_format,
        "index": {"nb_shards": args.nb_shards, "nb_replicas": args.nb_replicas},
        "runtime": {"workers": args.nb_threads, "batch_size": args.batch_size, "log_level": args.log_level},
    }
    return load_config(args.config, overrides)


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        config = config_from_args(args)
    except GeoImportError as exc:
        parser.error(str(exc))
    setup_logging(config.runtime.log_level)
    logger.info("Importing OpenAddresses into {cnx}", cnx=config.connection_string)
    if args.city_level is not None:
        logger.warning("city-level option is deprecated, it now has no effect")
    try:
        writer = ElasticsearchIndexWriter(config.connection_string)
        ImportPipeline(config, writer).run()
    except GeoImportError as exc:
        logger.error(str(exc))
        raise SystemExit(1)


if __name__ == "__main__":
    main()
