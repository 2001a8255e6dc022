"""Tests for the in-memory document store and the store helpers."""

import pytest
from bson.objectid import ObjectId
from pymongo import ASCENDING, DESCENDING

from database import MemoryStore, create_document, get_documents, parse_object_id, to_dict
from errors import Conflict, InvalidArgument


class TestParseObjectId:
    def test_valid_id(self):
        oid = ObjectId()
        assert parse_object_id(str(oid)) == oid

    @pytest.mark.parametrize("value", ["", "123", "not-an-object-id", "zzzzzzzzzzzzzzzzzzzzzzzz"])
    def test_malformed_id_rejected(self, value):
        with pytest.raises(InvalidArgument):
            parse_object_id(value)


class TestToDict:
    def test_renames_object_id(self):
        oid = ObjectId()
        assert to_dict({"_id": oid, "name": "Shirt"}) == {"id": str(oid), "name": "Shirt"}

    def test_passes_through_empty(self):
        assert to_dict(None) is None
        assert to_dict({}) == {}


class TestMemoryStore:
    def test_insert_and_find_one(self):
        store = MemoryStore()
        inserted = store.insert_one("products", {"name": "Denim Jacket"})
        doc = store.find_one("products", {"_id": ObjectId(inserted)})
        assert doc["name"] == "Denim Jacket"

    def test_returned_documents_are_copies(self):
        store = MemoryStore()
        inserted = store.insert_one("products", {"name": "Polo", "sizes": ["M"]})
        doc = store.find_one("products", {"_id": ObjectId(inserted)})
        doc["sizes"].append("XL")
        assert store.find_one("products", {"_id": ObjectId(inserted)})["sizes"] == ["M"]

    def test_find_filters_sorts_and_limits(self):
        store = MemoryStore()
        for rank in [3, 1, 2, 5, 4]:
            store.insert_one("products", {"rank": rank, "showOnHome": rank % 2 == 1})

        ranks = [d["rank"] for d in store.find("products", {"showOnHome": True}, sort=[("rank", DESCENDING)])]
        assert ranks == [5, 3, 1]

        ranks = [d["rank"] for d in store.find("products", sort=[("rank", ASCENDING)], limit=2)]
        assert ranks == [1, 2]

    def test_compound_sort_breaks_ties(self):
        store = MemoryStore()
        store.insert_one("tracking", {"t": 1, "n": "b"})
        store.insert_one("tracking", {"t": 1, "n": "a"})
        store.insert_one("tracking", {"t": 0, "n": "c"})
        names = [d["n"] for d in store.find("tracking", sort=[("t", ASCENDING), ("n", ASCENDING)])]
        assert names == ["c", "a", "b"]

    def test_missing_sort_field_sorts_first(self):
        store = MemoryStore()
        store.insert_one("orders", {"createdAt": 2})
        store.insert_one("orders", {})
        values = [d.get("createdAt") for d in store.find("orders", sort=[("createdAt", ASCENDING)])]
        assert values == [None, 2]

    def test_update_sets_and_unsets(self):
        store = MemoryStore()
        oid = ObjectId(store.insert_one("users", {"status": "suspended", "suspendReason": "spam"}))
        matched = store.update_one("users", {"_id": oid}, {"status": "approved"}, unset=["suspendReason"])
        assert matched == 1
        assert store.find_one("users", {"_id": oid}) == {"_id": oid, "status": "approved"}

    def test_update_missing_document_matches_nothing(self):
        store = MemoryStore()
        assert store.update_one("users", {"_id": ObjectId()}, {"status": "approved"}) == 0

    def test_delete(self):
        store = MemoryStore()
        oid = ObjectId(store.insert_one("products", {"name": "Scarf"}))
        assert store.delete_one("products", {"_id": oid}) == 1
        assert store.delete_one("products", {"_id": oid}) == 0
        assert store.find_one("products", {"_id": oid}) is None

    def test_unique_index(self):
        store = MemoryStore()
        store.ensure_unique("orders", "sessionId")
        store.insert_one("orders", {"sessionId": "cs_1"})
        store.insert_one("orders", {"productId": "p"})
        store.insert_one("orders", {"productId": "q"})

        with pytest.raises(Conflict):
            store.insert_one("orders", {"sessionId": "cs_1"})
        assert store.count("orders") == 3

    def test_collection_names(self):
        store = MemoryStore()
        store.insert_one("users", {"email": "a@example.com"})
        assert store.collection_names() == ["users"]


class TestHelpers:
    def test_create_document_stamps_created_at_and_drops_ids(self):
        store = MemoryStore()
        inserted = create_document(store, "products", {"_id": "spoofed", "id": "x", "name": "Tee"})
        doc = store.find_one("products", {"_id": ObjectId(inserted)})
        assert doc["name"] == "Tee"
        assert "createdAt" in doc
        assert "id" not in doc

    def test_get_documents_serializes_ids(self):
        store = MemoryStore()
        inserted = store.insert_one("products", {"name": "Tee"})
        assert get_documents(store, "products") == [{"id": inserted, "name": "Tee"}]
