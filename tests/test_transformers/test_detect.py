"""Tests for import format detection."""

import pytest

from arc_data.errors import ImportParseError
from arc_data.transformers import (
    DexieTransformer,
    ImportFormat,
    LegacyTransformer,
    PostmanV2Transformer,
    create_transformer,
    detect_format,
)
from arc_data.transformers.detect import is_arc_file, is_old_import, is_postman, is_single_request

V21_SCHEMA = "https://schema.getpostman.com/json/collection/v2.1.0/collection.json"
V20_SCHEMA = "https://schema.getpostman.com/json/collection/v2.0.0/collection.json"


class TestDetectFormat:
    @pytest.mark.parametrize(
        "data,expected",
        [
            ({"kind": "ARC#requestsDataExport", "requests": []}, ImportFormat.DEXIE),
            ({"kind": "ARC#AllDataExport", "requests": []}, ImportFormat.POUCH),
            ({"kind": "ARC#SavedHistoryDataExport"}, ImportFormat.POUCH),
            ({"kind": "ARC#ProjectExport"}, ImportFormat.POUCH),
            ({"requests": [{"id": 1}], "projects": []}, ImportFormat.LEGACY),
            ({"headers": "", "url": "https://a.com", "method": "GET"}, ImportFormat.LEGACY),
            ({"version": 1, "collections": [{"id": "c"}]}, ImportFormat.POSTMAN_BACKUP),
            ({"info": {"schema": V21_SCHEMA}, "item": []}, ImportFormat.POSTMAN_V2),
            ({"info": {"schema": V20_SCHEMA}, "item": []}, ImportFormat.POSTMAN_V2),
            ({"id": "c", "folders": [{}], "requests": [{}]}, ImportFormat.POSTMAN_V1),
            ({"_postman_variable_scope": "environment", "values": []}, ImportFormat.POSTMAN_ENVIRONMENT),
        ],
    )
    def test_formats(self, data, expected):
        assert detect_format(data) == expected

    def test_unsupported_postman_schema(self):
        with pytest.raises(ImportParseError, match="Unsupported Postman collection schema"):
            detect_format({"info": {"schema": "https://schema.getpostman.com/v3"}})

    @pytest.mark.parametrize("data", [{"foo": 1}, [], "text", None, {"kind": "Other#Export"}])
    def test_not_recognized(self, data):
        with pytest.raises(ImportParseError, match="File not recognized"):
            detect_format(data)


class TestPredicates:
    def test_is_old_import(self):
        assert is_old_import({"headers": "", "url": "u", "method": "GET"})
        assert not is_old_import({"url": "u", "method": "GET"})
        assert not is_old_import({"headers": "", "url": "u", "method": "GET", "requests": [{}]})

    def test_is_postman(self):
        assert is_postman({"info": {"schema": V21_SCHEMA}})
        assert not is_postman({"info": {}})
        assert not is_postman({"requests": [{}]})

    def test_is_arc_file(self):
        assert is_arc_file({"kind": "ARC#Anything"})
        assert is_arc_file({"url-history": []})
        assert not is_arc_file({"kind": 5})
        assert not is_arc_file(["requests"])

    def test_is_single_request(self):
        data = {"createdAt": "", "version": "1", "kind": "ARC#Import", "requests": [{}]}
        assert is_single_request(data)
        assert is_single_request({**data, "projects": []})
        assert not is_single_request({**data, "requests": [{}, {}]})
        assert not is_single_request({**data, "variables": [{}]})
        assert not is_single_request({**data, "history": [{}]})


class TestCreateTransformer:
    def test_detects_transformer(self):
        transformer = create_transformer({"requests": [], "projects": []})
        assert isinstance(transformer, LegacyTransformer)

    def test_chunked_transformers_get_chunk_settings(self):
        hook = lambda: None  # noqa: E731
        transformer = create_transformer(
            {"info": {"schema": V21_SCHEMA}}, chunk_size=10, yield_hook=hook
        )
        assert isinstance(transformer, PostmanV2Transformer)
        assert transformer.chunk_size == 10
        assert transformer.yield_hook is hook

    def test_explicit_format(self):
        transformer = create_transformer({"requests": []}, ImportFormat.DEXIE)
        assert isinstance(transformer, DexieTransformer)
