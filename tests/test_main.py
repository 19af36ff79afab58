"""Tests for main module."""

import json
import logging

import pytest

from arc_data.config import Config
from arc_data.main import build_parser, create_data_layer, main


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    directory = tmp_path / "data"
    monkeypatch.setenv("ARC_DATA_DIR", str(directory))
    monkeypatch.delenv("ARC_STORE_DB", raising=False)
    monkeypatch.delenv("ARC_INDEX_DB", raising=False)
    monkeypatch.setenv("ARC_INDEX_DEBOUNCE_MS", "0")
    return directory


@pytest.fixture
def export_file(tmp_path):
    path = tmp_path / "import.arc"
    path.write_text(
        json.dumps(
            {
                "kind": "ARC#AllDataExport",
                "requests": [
                    {"key": "r1", "name": "Users", "url": "https://api.domain.com/users"},
                    {"key": "r2", "name": "Other", "url": "https://other.com"},
                ],
                "history": [{"key": "h1", "url": "https://api.domain.com/items", "created": 1000}],
            }
        ),
        encoding="utf-8",
    )
    return path


def test_build_parser():
    parser = build_parser()
    args = parser.parse_args(["export", "out.arc", "--type", "requests", "--type", "variables"])
    assert args.command == "export"
    assert args.type == ["requests", "variables"]

    args = parser.parse_args(["query", "domain", "--type", "saved", "--detailed"])
    assert (args.term, args.type, args.detailed) == ("domain", "saved", True)

    assert parser.parse_args(["reindex"]).type is None


def test_build_parser_requires_command():
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


def test_create_data_layer(data_dir, caplog):
    config = Config.from_env()
    with caplog.at_level(logging.INFO):
        layer = create_data_layer(config)
    try:
        assert config.store_db.exists()
        assert config.index_db.exists()
        assert layer.text_indexer.db is layer.indexer.db
        assert any("Opening document store" in r.message for r in caplog.records)
    finally:
        layer.close()


def test_import_and_query(data_dir, export_file, capsys):
    assert main(["import", str(export_file)]) == 0
    capsys.readouterr()

    assert main(["query", "api.domain"]) == 0
    lines = capsys.readouterr().out.strip().splitlines()
    assert sorted(line.split("\t")[1] for line in lines) == ["h1", "r1"]

    assert main(["query", "api.domain", "--type", "saved"]) == 0
    lines = capsys.readouterr().out.strip().splitlines()
    assert [line.split("\t")[1] for line in lines] == ["r1"]


def test_export(data_dir, export_file, tmp_path):
    main(["import", str(export_file)])
    target = tmp_path / "out" / "backup.arc"

    assert main(["export", str(target), "--type", "requests"]) == 0

    data = json.loads(target.read_text(encoding="utf-8"))
    assert sorted(item["key"] for item in data["requests"]) == ["r1", "r2"]
    assert "history" not in data


def test_reindex(data_dir, export_file, caplog):
    main(["import", str(export_file)])
    with caplog.at_level(logging.INFO):
        assert main(["reindex", "saved"]) == 0
    assert any("Reindex of saved complete: 2 requests indexed" in r.message for r in caplog.records)


def test_import_missing_file(data_dir, tmp_path, caplog):
    with caplog.at_level(logging.ERROR):
        assert main(["import", str(tmp_path / "missing.arc")]) == 1
    assert any("import failed" in r.message for r in caplog.records)


def test_import_unrecognized_file(data_dir, tmp_path):
    path = tmp_path / "bad.json"
    path.write_text('{"hello": "world"}', encoding="utf-8")
    assert main(["import", str(path)]) == 1
