"""Firestore REST (v1) implementation of the remote document store."""

import logging
from typing import Any, Optional
from urllib.parse import quote

import requests

from job_board.config import RemoteConfig
from job_board.utils.http_client import create_session

from .remote import Document, DocumentStore, Filter, Order, RemoteStoreError

logger = logging.getLogger("job_board.storage.firestore")

FIELD_OPERATORS = {
    "==": "EQUAL",
    "<": "LESS_THAN",
    "<=": "LESS_THAN_OR_EQUAL",
    ">": "GREATER_THAN",
    ">=": "GREATER_THAN_OR_EQUAL",
}


def encode_value(value: Any) -> dict:
    """Python value -> Firestore typed value."""
    if value is None:
        return {"nullValue": None}
    if isinstance(value, bool):
        return {"booleanValue": value}
    if isinstance(value, int):
        # int64 travels as a decimal string
        return {"integerValue": str(value)}
    if isinstance(value, float):
        return {"doubleValue": value}
    if isinstance(value, str):
        return {"stringValue": value}
    if isinstance(value, (list, tuple)):
        return {"arrayValue": {"values": [encode_value(v) for v in value]}}
    if isinstance(value, dict):
        return {"mapValue": {"fields": encode_fields(value)}}
    raise TypeError(f"Cannot store {type(value).__name__} in a document")


def encode_fields(data: dict) -> dict:
    return {key: encode_value(value) for key, value in data.items()}


def decode_value(value: dict) -> Any:
    """Firestore typed value -> Python value."""
    if "nullValue" in value:
        return None
    if "booleanValue" in value:
        return bool(value["booleanValue"])
    if "integerValue" in value:
        return int(value["integerValue"])
    if "doubleValue" in value:
        return float(value["doubleValue"])
    if "arrayValue" in value:
        return [decode_value(v) for v in value["arrayValue"].get("values", [])]
    if "mapValue" in value:
        return decode_fields(value["mapValue"].get("fields", {}))
    for key in ("stringValue", "timestampValue", "referenceValue", "bytesValue", "geoPointValue"):
        if key in value:
            return value[key]
    raise RemoteStoreError(f"Unknown Firestore value type: {sorted(value)}")


def decode_fields(fields: dict) -> dict:
    return {key: decode_value(value) for key, value in fields.items()}


def document_id(name: str) -> str:
    """Last path segment of a full document resource name."""
    return name.rsplit("/", 1)[-1]


def build_where(filters: list[Filter]) -> Optional[dict]:
    clauses = []
    for f in filters:
        if f.op == "==" and f.value is None:
            clauses.append({"unaryFilter": {"field": {"fieldPath": f.field}, "op": "IS_NULL"}})
        else:
            clauses.append({
                "fieldFilter": {
                    "field": {"fieldPath": f.field},
                    "op": FIELD_OPERATORS[f.op],
                    "value": encode_value(f.value),
                }
            })
    if not clauses:
        return None
    if len(clauses) == 1:
        return clauses[0]
    return {"compositeFilter": {"op": "AND", "filters": clauses}}


def build_structured_query(
    collection: str,
    filters: Optional[list[Filter]] = None,
    order_by: Optional[list[Order]] = None,
    limit: Optional[int] = None,
) -> dict:
    query: dict = {"from": [{"collectionId": collection}]}
    where = build_where(filters or [])
    if where:
        query["where"] = where
    if order_by:
        query["orderBy"] = [
            {
                "field": {"fieldPath": o.field},
                "direction": "DESCENDING" if o.descending else "ASCENDING",
            }
            for o in order_by
        ]
    if limit is not None:
        query["limit"] = limit
    return query


class FirestoreStore(DocumentStore):
    """Talks to the Firestore REST API with an API key and/or a bearer token."""

    def __init__(self, config: RemoteConfig, session: Optional[requests.Session] = None):
        self.config = config
        self.session = session or create_session()
        self.documents_url = (
            f"{config.base_url.rstrip('/')}/projects/{config.project_id}"
            f"/databases/{config.database}/documents"
        )
        if config.auth_token:
            self.session.headers["Authorization"] = f"Bearer {config.auth_token}"

    def add(self, collection: str, data: dict) -> str:
        body = self._request("POST", f"{self.documents_url}/{collection}", json={"fields": encode_fields(data)})
        try:
            return document_id(body["name"])
        except (KeyError, TypeError) as e:
            raise RemoteStoreError(f"Malformed create response for {collection}") from e

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        body = self._request("GET", self._doc_url(collection, doc_id), allow_missing=True)
        if body is None:
            return None
        return decode_fields(body.get("fields", {}))

    def query(self, collection, filters=None, order_by=None, limit=None) -> list[Document]:
        payload = {"structuredQuery": build_structured_query(collection, filters, order_by, limit)}
        body = self._request("POST", f"{self.documents_url}:runQuery", json=payload)
        docs = []
        # runQuery streams one entry per result; entries without "document" carry only readTime
        for entry in body or []:
            doc = entry.get("document")
            if doc:
                docs.append((document_id(doc["name"]), decode_fields(doc.get("fields", {}))))
        return docs

    def set(self, collection: str, doc_id: str, data: dict):
        self._request("PATCH", self._doc_url(collection, doc_id), json={"fields": encode_fields(data)})

    def update(self, collection: str, doc_id: str, fields: dict):
        params = [("updateMask.fieldPaths", name) for name in fields]
        params.append(("currentDocument.exists", "true"))
        self._request(
            "PATCH",
            self._doc_url(collection, doc_id),
            params=params,
            json={"fields": encode_fields(fields)},
        )

    def delete(self, collection: str, doc_id: str):
        self._request("DELETE", self._doc_url(collection, doc_id))

    def _doc_url(self, collection: str, doc_id: str) -> str:
        return f"{self.documents_url}/{collection}/{quote(doc_id, safe='')}"

    def _request(self, method: str, url: str, params=None, json=None, allow_missing: bool = False):
        params = list(params or [])
        if self.config.api_key:
            params.append(("key", self.config.api_key))
        logger.debug("%s %s", method, url)
        try:
            response = self.session.request(
                method, url, params=params, json=json, timeout=self.config.timeout
            )
        except requests.RequestException as e:
            raise RemoteStoreError(f"{method} {url} failed: {e}") from e

        if allow_missing and response.status_code == 404:
            return None
        if response.status_code >= 400:
            raise RemoteStoreError(
                f"{method} {url} returned HTTP {response.status_code}: {response.text[:200]}"
            )
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise RemoteStoreError(f"{method} {url} returned invalid JSON") from e
