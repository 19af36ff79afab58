"""Command line entry point for arc-data."""

import argparse
import logging
import sys
from dataclasses import dataclass
from pathlib import Path

from arc_data.config import Config
from arc_data.errors import ArcDataError
from arc_data.events import EventBus
from arc_data.exporter import EXPORT_STORES, DataExporter, ExportOptions, FileExportProvider
from arc_data.importer import DataImporter, ImportNormalizer
from arc_data.indexer import TextIndexer, UrlIndexer
from arc_data.models import RequestModel
from arc_data.store import DocumentStore
from arc_data.sync import IndexSync

logger = logging.getLogger(__name__)


@dataclass
class DataLayer:
    """The wired components of the data layer."""

    config: Config
    store: DocumentStore
    events: EventBus
    indexer: UrlIndexer
    text_indexer: TextIndexer
    sync: IndexSync

    def close(self) -> None:
        self.sync.stop()
        self.indexer.close()
        self.store.close()


def create_data_layer(config: Config) -> DataLayer:
    """Create the store, the indexers and the index sync.

    Args:
        config: Configuration instance with all settings.
    """
    logger.info("Opening document store at %s", config.store_db)
    store = DocumentStore(config.store_db)
    store.initialize()

    events = EventBus()
    indexer = UrlIndexer(config.index_db, store, events, page_size=config.reindex_page_size)
    indexer.initialize()
    text_indexer = TextIndexer(indexer.db, store, page_size=config.reindex_page_size)

    sync = IndexSync(indexer, events, debounce=config.index_debounce, text_indexer=text_indexer)
    sync.start()
    return DataLayer(config, store, events, indexer, text_indexer, sync)


def run_import(layer: DataLayer, file: str) -> int:
    content = Path(file).read_bytes()
    importer = DataImporter(
        layer.store, layer.events, ImportNormalizer(chunk_size=layer.config.chunk_size)
    )
    result = importer.process_data(content)
    layer.sync.flush()
    logger.info(
        "Imported %s: %d requests indexed, %d errors",
        file,
        len(result.indexed),
        len(result.errors),
    )
    for message in result.errors:
        logger.warning("  %s", message)
    return 1 if result.errors else 0


def run_export(layer: DataLayer, file: str, sections: list[str] | None) -> int:
    path = Path(file)
    exporter = DataExporter(layer.store, page_size=layer.config.export_page_size)
    data = {section: True for section in sections or EXPORT_STORES}
    result = exporter.export(data, ExportOptions(file=path.name), FileExportProvider(path.parent))
    logger.info("Exported %d bytes to %s", result.size, result.file)
    return 0


def run_query(layer: DataLayer, term: str, type_: str | None, detailed: bool) -> int:
    model = RequestModel(layer.store, layer.events, layer.indexer, layer.text_indexer)
    for request in model.query(term, type_, detailed):
        print(f"{request.get('type')}\t{request['_id']}\t{request.get('method')} {request.get('url')}")
    return 0


def run_reindex(layer: DataLayer, types: list[str]) -> int:
    for type_ in types:
        count = layer.sync.reindex_in_background(type_).result()
        logger.info("Reindex of %s complete: %d requests indexed", type_, count)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="arc-data - REST client data layer")
    commands = parser.add_subparsers(dest="command", required=True)

    import_parser = commands.add_parser("import", help="Import an export file")
    import_parser.add_argument("file", help="ARC, Postman or YAML export file")

    export_parser = commands.add_parser("export", help="Export stored data to a file")
    export_parser.add_argument("file", help="Target file")
    export_parser.add_argument(
        "--type",
        action="append",
        choices=sorted([*EXPORT_STORES, "clientcertificates"]),
        help="Section to export (repeatable, all sections by default)",
    )

    query_parser = commands.add_parser("query", help="Search requests by URL or name")
    query_parser.add_argument("term")
    query_parser.add_argument("--type", choices=["saved", "history"])
    query_parser.add_argument(
        "--detailed",
        action="store_true",
        help="Match anywhere in a URL fragment, not only at its start",
    )

    reindex_parser = commands.add_parser("reindex", help="Rebuild the URL index")
    reindex_parser.add_argument(
        "type", nargs="?", choices=["saved", "history"], help="Request type (both by default)"
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """Main function - runs one command."""
    # Configure logging here to avoid side effects on import
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    args = build_parser().parse_args(argv)
    config = Config.from_env()

    logger.info("=" * 50)
    logger.info("arc-data %s", args.command)
    logger.info("  ARC_STORE_DB: %s", config.store_db)
    logger.info("  ARC_INDEX_DB: %s", config.index_db)
    logger.info("=" * 50)

    layer = create_data_layer(config)
    try:
        if args.command == "import":
            return run_import(layer, args.file)
        if args.command == "export":
            return run_export(layer, args.file, args.type)
        if args.command == "query":
            return run_query(layer, args.term, args.type, args.detailed)
        return run_reindex(layer, [args.type] if args.type else ["saved", "history"])
    except (ArcDataError, OSError, ValueError) as e:
        logger.error("%s failed: %s", args.command, e)
        return 1
    finally:
        layer.close()


if __name__ == "__main__":
    sys.exit(main())
