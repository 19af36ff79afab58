"""Tests for the authorization data model."""

import pytest

from arc_data.errors import ValidationError
from arc_data.events import EventBus
from arc_data.models import AuthDataModel
from arc_data.models.auth_data import compute_key, normalize_url
from arc_data.store import DocumentStore


@pytest.fixture
def events():
    return EventBus()


@pytest.fixture
def model(tmp_path, events):
    store = DocumentStore(tmp_path / "store.db")
    store.initialize()
    yield AuthDataModel(store, events)
    store.close()


@pytest.mark.parametrize(
    "url,expected",
    [
        ("https://Domain.com/path?a=b#hash", "https://domain.com/path"),
        ("https://domain.com", "https://domain.com/"),
        ("not a url", "not a url"),
        ("", ""),
        (None, ""),
    ],
)
def test_normalize_url(url, expected):
    assert normalize_url(url) == expected


def test_compute_key():
    assert compute_key("basic", "https://a.com/") == "basic/https%3A%2F%2Fa.com%2F"
    assert compute_key("ntlm", "") == "ntlm/"


class TestAuthDataModel:
    def test_update_and_query(self, model: AuthDataModel):
        model.update("https://a.com/api?x=1", "basic", {"username": "u", "password": "p"})

        doc = model.query("https://a.com/api", "basic")
        assert doc["username"] == "u"
        assert doc["password"] == "p"
        assert doc["_id"] == compute_key("basic", "https://a.com/api")

    def test_query_missing(self, model: AuthDataModel):
        model.update("https://a.com/api", "basic", {"username": "u"})
        assert model.query("https://a.com/api", "ntlm") is None
        assert model.query("https://b.com", "basic") is None

    def test_update_merges_stored_data(self, model: AuthDataModel):
        model.update("https://a.com", "ntlm", {"username": "u", "domain": "d"})
        doc = model.update("https://a.com", "ntlm", {"password": "p"})

        assert doc["_rev"].startswith("2-")
        stored = model.query("https://a.com", "ntlm")
        assert (stored["username"], stored["domain"], stored["password"]) == ("u", "d", "p")

    def test_update_emits_event(self, model: AuthDataModel, events):
        received = []
        events.subscribe("authdata.changed", received.append)
        doc = model.update("https://a.com", "basic", {"username": "u"})
        assert received[0]["data"] == doc

    def test_method_required(self, model: AuthDataModel):
        with pytest.raises(ValidationError, match="authMethod"):
            model.update("https://a.com", "", {"username": "u"})
