"""Client certificates.

A certificate is kept in two documents: the listing entry (name, type,
created) and the data document holding the certificate and its key. Binary
certificate data is stored base64 encoded with `type: "buffer"`.
"""

import base64
import logging
from typing import Any

from arc_data.errors import ValidationError
from arc_data.models.base import BaseModel
from arc_data.transformers.base import new_key, now_millis

logger = logging.getLogger(__name__)


def certificate_to_store(cert: dict[str, Any]) -> dict[str, Any]:
    """
    Storable form of a certificate definition `{data, passphrase?}`.

    Raises:
        ValidationError: If the certificate has no data.
    """
    if not isinstance(cert, dict) or not cert.get("data"):
        raise ValidationError("Certificate content not set.")
    result = dict(cert)
    if isinstance(result["data"], (bytes, bytearray)):
        result["type"] = "buffer"
        result["data"] = base64.b64encode(bytes(result["data"])).decode("ascii")
    return result


def certificate_from_store(cert: dict[str, Any]) -> dict[str, Any]:
    result = dict(cert)
    if result.pop("type", None) == "buffer":
        result["data"] = base64.b64decode(result["data"])
    return result


class ClientCertificateModel(BaseModel):
    """Stores client certificates."""

    store_name = "client-certificates"
    data_store = "client-certificates-data"

    def list(self) -> list[dict[str, Any]]:
        """Listing entries, without the certificate data."""
        items = self.store.all_docs(self.store_name)
        for item in items:
            item.pop("dataKey", None)
        return items

    def get(self, cert_id: str) -> dict[str, Any]:
        """
        Certificate with its data.

        Raises:
            ValidationError: If `cert_id` is empty.
            DocumentNotFoundError: If the certificate does not exist.
        """
        if not cert_id:
            raise ValidationError('The "id" argument is missing')
        doc = self.store.get(self.store_name, cert_id)
        data = self.store.get(self.data_store, doc.pop("dataKey", None) or cert_id)
        doc["cert"] = certificate_from_store(data["cert"])
        if data.get("key"):
            doc["key"] = certificate_from_store(data["key"])
        return doc

    def insert(self, value: dict[str, Any]) -> str:
        """
        Store a certificate.

        Returns:
            Id of the listing entry.

        Raises:
            ValidationError: If `cert` or `type` is missing.
        """
        data = dict(value or {})
        if not data.get("cert"):
            raise ValidationError('The "cert" property is required.')
        if not data.get("type"):
            raise ValidationError('The "type" property is required.')
        data_doc: dict[str, Any] = {
            "_id": new_key(),
            "cert": certificate_to_store(data.pop("cert")),
        }
        if data.get("key"):
            data_doc["key"] = certificate_to_store(data.pop("key"))
        self.store.put(self.data_store, data_doc)

        data["dataKey"] = data_doc["_id"]
        data["_id"] = data.get("_id") or new_key()
        if not data.get("created"):
            data["created"] = now_millis()
        self.store.put(self.store_name, data)
        self.emit("certificate.changed", {"id": data["_id"]})
        return data["_id"]

    def delete(self, cert_id: str) -> None:
        """Delete a certificate with its data."""
        if not cert_id:
            raise ValidationError('The "id" argument is missing')
        doc = self.store.get(self.store_name, cert_id)
        self.store.remove(self.store_name, cert_id, doc["_rev"])
        self.store.remove(self.data_store, doc.get("dataKey") or cert_id)
        self.emit("certificate.deleted", {"id": cert_id})

    def delete_model(self) -> None:
        self.destroy_store(self.store_name)
        self.destroy_store(self.data_store)
