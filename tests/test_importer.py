"""Tests for the data importer."""

import json

import pytest

from arc_data.errors import ImportParseError, ValidationError
from arc_data.events import EventBus
from arc_data.importer import (
    DataImporter,
    ImportDataStore,
    ImportNormalizer,
    prepare_import_object,
    transform_keys,
)
from arc_data.store import DocumentStore

V21_SCHEMA = "https://schema.getpostman.com/json/collection/v2.1.0/collection.json"


@pytest.fixture
def store(tmp_path):
    document_store = DocumentStore(tmp_path / "store.db")
    document_store.initialize()
    yield document_store
    document_store.close()


@pytest.fixture
def events():
    return EventBus()


@pytest.fixture
def importer(store, events):
    return DataImporter(store, events)


@pytest.fixture
def arc_export():
    return {
        "kind": "ARC#AllDataExport",
        "createdAt": "2024-02-10T12:00:00Z",
        "version": "15.0.0",
        "projects": [{"key": "p1", "name": "Project", "requests": ["r1"]}],
        "requests": [
            {"key": "r1", "name": "Saved", "url": "https://domain.com/api", "projects": ["p1"]},
            {"key": "r2", "name": "Other", "url": "https://other.com"},
        ],
        "history": [{"key": "h1", "url": "https://history.com", "created": 1000}],
        "url-history": [{"key": "https://domain.com", "cnt": 2}],
        "variables": [
            {"key": "v1", "variable": "host", "value": "a.com", "environment": "Prod"},
            {"key": "v2", "variable": "token", "value": "x", "environment": "default"},
        ],
        "cookies": [{"key": "c1", "name": "sid", "value": "1", "domain": "domain.com"}],
    }


class TestPrepareImportObject:
    def test_json_text(self):
        assert prepare_import_object('{"requests": []}') == {"requests": []}

    def test_bytes_with_bom(self):
        assert prepare_import_object(b'\xef\xbb\xbf{"a": 1}') == {"a": 1}

    def test_yaml_fallback(self):
        content = "kind: ARC#AllDataExport\nrequests:\n  - key: r1\n    url: https://a.com\n"
        data = prepare_import_object(content)
        assert data["requests"] == [{"key": "r1", "url": "https://a.com"}]

    def test_mapping_passes_through(self):
        data = {"a": 1}
        assert prepare_import_object(data) is data

    @pytest.mark.parametrize("raw", ["[1, 2]", "just text", "", 42])
    def test_not_an_object(self, raw):
        with pytest.raises(ImportParseError, match="Expected an object"):
            prepare_import_object(raw)

    def test_unparsable_text(self):
        with pytest.raises(ImportParseError, match="Not a JSON"):
            prepare_import_object("{{{{")

    def test_invalid_utf8(self):
        with pytest.raises(ImportParseError, match="Not UTF-8"):
            prepare_import_object(b"\xff\xfe\xfd")


def test_transform_keys():
    docs = transform_keys([{"key": "a", "kind": "ARC#RequestData", "url": "u"}, {"url": "v"}])
    assert docs[0] == {"_id": "a", "url": "u"}
    assert docs[1]["_id"]
    assert "kind" not in docs[1]


class TestImportNormalizer:
    def test_normalizes_postman(self):
        collection = {
            "info": {"_postman_id": "pid", "name": "Col", "schema": V21_SCHEMA},
            "item": [{"name": "R", "request": "https://a.com"}],
        }
        result = ImportNormalizer().normalize(json.dumps(collection))
        assert result["kind"] == "ARC#Import"
        assert result["requests"][0]["url"] == "https://a.com"

    def test_unknown_format(self):
        with pytest.raises(ImportParseError, match="File not recognized"):
            ImportNormalizer().normalize('{"something": "else"}')


class TestDataImporter:
    def test_process_data_stores_sections(self, importer: DataImporter, store, arc_export):
        result = importer.process_data(json.dumps(arc_export))

        assert result.errors == []
        assert store.count("saved-requests") == 2
        assert store.count("history-requests") == 1
        assert store.count("legacy-projects") == 1
        assert store.count("url-history") == 1
        assert store.count("variables") == 2
        assert store.count("cookies") == 1
        assert store.get("saved-requests", "r1")["projects"] == ["p1"]
        assert "kind" not in store.get("saved-requests", "r1")

    def test_creates_environments(self, importer: DataImporter, store, arc_export):
        importer.process_data(arc_export)
        environments = store.all_docs("variables-environments")
        assert [env["name"] for env in environments] == ["prod"]

        importer.process_data(arc_export)
        assert store.count("variables-environments") == 1

    def test_indexed_requests(self, importer: DataImporter, arc_export):
        result = importer.process_data(arc_export)
        assert sorted((item.id, item.type) for item in result.indexed) == [
            ("h1", "history"),
            ("r1", "saved"),
            ("r2", "saved"),
        ]

    def test_events(self, importer: DataImporter, events, arc_export):
        received = []
        events.subscribe("*", received.append)
        importer.process_data(arc_export)

        assert [e["event_type"] for e in received] == ["request.changed", "data.imported"]
        changed = received[0]["data"]
        assert {"id": "r1", "url": "https://domain.com/api", "type": "saved"} in changed
        assert received[1]["data"] == {"errors": []}

    def test_reimport_updates_documents(self, importer: DataImporter, store, arc_export):
        importer.process_data(arc_export)
        arc_export["requests"][0]["name"] = "Renamed"
        result = importer.process_data(arc_export)

        assert result.errors == []
        assert store.count("saved-requests") == 2
        doc = store.get("saved-requests", "r1")
        assert doc["name"] == "Renamed"
        assert doc["_rev"].startswith("2-")

    def test_load_to_workspace_export_is_stored(self, importer: DataImporter, store, arc_export):
        arc_export["loadToWorkspace"] = True
        result = importer.process_data(arc_export)
        assert result.data["kind"] == "ARC#Import"
        assert store.count("saved-requests") == 2

    def test_unrecognized_file_stores_nothing(self, importer: DataImporter, store, events):
        received = []
        events.subscribe("*", received.append)
        with pytest.raises(ImportParseError):
            importer.process_data('{"not": "an export"}')
        assert store.count("saved-requests") == 0
        assert received == []

    def test_postman_import(self, importer: DataImporter, store):
        collection = {
            "info": {"_postman_id": "pid", "name": "Col", "schema": V21_SCHEMA},
            "item": [
                {"name": "One", "request": {"url": "https://a.com/{{id}}", "method": "GET"}},
                {"name": "Two", "request": {"url": "https://b.com", "method": "POST"}},
            ],
        }
        importer.process_data(json.dumps(collection))

        project = store.get("legacy-projects", "pid")
        assert len(project["requests"]) == 2
        urls = sorted(store.get("saved-requests", key)["url"] for key in project["requests"])
        assert urls == ["https://a.com/${id}", "https://b.com"]

    def test_store_data_validation(self, importer: DataImporter):
        with pytest.raises(ValidationError, match="Missing required argument"):
            importer.store_data({})
        with pytest.raises(ValidationError, match="not normalized"):
            importer.store_data({"kind": "ARC#AllDataExport", "requests": []})

    def test_store_data(self, importer: DataImporter, store):
        errors = importer.store_data(
            {"kind": "ARC#Import", "requests": [{"key": "r1", "url": "https://a.com"}]}
        )
        assert errors is None
        assert store.get("saved-requests", "r1")["url"] == "https://a.com"


class TestImportDataStore:
    def test_client_certificates(self, store):
        data_store = ImportDataStore(store)
        errors = data_store.import_data(
            {
                "kind": "ARC#Import",
                "clientcertificates": [
                    {
                        "key": "c1",
                        "name": "Cert",
                        "type": "p12",
                        "created": 1,
                        "cert": {"data": "AAE=", "type": "buffer"},
                        "pKey": {"data": "KEY"},
                    }
                ],
            }
        )
        assert errors is None
        index = store.get("client-certificates", "c1")
        assert index["dataKey"] == "c1"
        assert index["name"] == "Cert"
        data = store.get("client-certificates-data", "c1")
        assert data["cert"] == {"data": "AAE=", "type": "buffer"}
        assert data["key"] == {"data": "KEY"}

    def test_write_errors_are_collected(self, store):
        data_store = ImportDataStore(store)
        errors = data_store.import_data(
            {"kind": "ARC#Import", "cookies": [{"key": "bad", "value": object()}, {"key": "ok"}]}
        )
        assert len(errors) == 1
        assert store.count("cookies") == 1
