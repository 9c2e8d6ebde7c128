import unittest
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

from google.api_core import exceptions
from google.cloud.firestore_v1.base_query import FieldFilter

from portal.documents import FirestoreDocumentStore, InMemoryDocumentStore
from portal.errors import NotFoundError

NOW = datetime(2024, 5, 10, tzinfo=timezone.utc)


class InMemoryDocumentStoreTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDocumentStore()

    def test_set_get_merge(self):
        self.db.set("users", "u1", {"uid": "u1", "role": "free"})
        self.db.set("users", "u1", {"email": "a@example.com"}, merge=True)
        self.assertEqual(
            self.db.get("users", "u1"),
            {"uid": "u1", "role": "free", "email": "a@example.com"},
        )
        self.db.set("users", "u1", {"uid": "u1"})
        self.assertEqual(self.db.get("users", "u1"), {"uid": "u1"})
        self.assertIsNone(self.db.get("users", "missing"))

    def test_get_returns_copies(self):
        self.db.set("users", "u1", {"tags": ["a"]})
        self.db.get("users", "u1")["tags"].append("b")
        self.assertEqual(self.db.get("users", "u1"), {"tags": ["a"]})

    def test_update_with_increments(self):
        self.db.set("users", "u1", {"downloadCount": 2})
        self.db.update("users", "u1", {"lastDownloadDate": NOW}, {"downloadCount": 1})
        self.assertEqual(
            self.db.get("users", "u1"), {"downloadCount": 3, "lastDownloadDate": NOW}
        )
        with self.assertRaises(NotFoundError):
            self.db.update("users", "missing", {"x": 1})

    def test_query_filters_order_and_limit(self):
        for i in range(5):
            self.db.add(
                "downloads",
                {"uid": "u1" if i % 2 else "u2", "timestamp": NOW - timedelta(hours=i)},
            )
        self.db.add("downloads", {"uid": "u1"})

        docs = self.db.query(
            "downloads",
            where=[("uid", "==", "u1"), ("timestamp", ">=", NOW - timedelta(hours=3))],
        )
        self.assertEqual(len(docs), 2)

        newest = self.db.query("downloads", order_by="timestamp", limit=2)
        self.assertEqual(
            [d.data["timestamp"] for d in newest], [NOW, NOW - timedelta(hours=1)]
        )
        oldest = self.db.query("downloads", order_by="timestamp", descending=False)
        self.assertEqual(len(oldest), 5)
        self.assertEqual(oldest[0].data["timestamp"], NOW - timedelta(hours=4))

        with self.assertRaises(ValueError):
            self.db.query("downloads", where=[("uid", "in", ["u1"])])

    def test_delete_and_reset(self):
        doc_id = self.db.add("page_views", {"uid": "u1"})
        self.db.delete("page_views", doc_id)
        self.db.delete("page_views", doc_id)
        self.assertEqual(self.db.query("page_views"), [])
        self.db.add("page_views", {"uid": "u1"})
        self.db.reset()
        self.assertEqual(self.db.query("page_views"), [])


class FirestoreDocumentStoreTests(unittest.TestCase):
    def setUp(self):
        self.client = MagicMock()
        self.collection = self.client.collection.return_value
        self.store = FirestoreDocumentStore(client=self.client)

    def test_add_returns_generated_id(self):
        ref = MagicMock(id="abc123")
        self.collection.add.return_value = (NOW, ref)
        self.assertEqual(self.store.add("page_views", {"uid": "u1"}), "abc123")
        self.client.collection.assert_called_with("page_views")

    def test_get_missing_document(self):
        snapshot = MagicMock(exists=False)
        self.collection.document.return_value.get.return_value = snapshot
        self.assertIsNone(self.store.get("users", "u1"))

    @patch("portal.documents.firestore.Increment")
    def test_update_uses_increment(self, mock_increment):
        mock_increment.return_value = "INC(1)"
        self.store.update("users", "u1", {"lastDownloadDate": NOW}, {"downloadCount": 1})
        mock_increment.assert_called_once_with(1)
        self.collection.document.return_value.update.assert_called_once_with(
            {"lastDownloadDate": NOW, "downloadCount": "INC(1)"}
        )

    def test_update_missing_document(self):
        self.collection.document.return_value.update.side_effect = exceptions.NotFound(
            "no document"
        )
        with self.assertRaises(NotFoundError):
            self.store.update("users", "u1", {"x": 1})

    def test_query_builds_filters(self):
        query = self.collection.where.return_value
        query.order_by.return_value = query
        query.limit.return_value = query
        snapshot = MagicMock(id="d1")
        snapshot.to_dict.return_value = {"uid": "u1"}
        query.stream.return_value = [snapshot]

        docs = self.store.query(
            "downloads", where=[("uid", "==", "u1")], order_by="timestamp", limit=10
        )

        self.assertEqual([(d.id, d.data) for d in docs], [("d1", {"uid": "u1"})])
        flt = self.collection.where.call_args.kwargs["filter"]
        self.assertIsInstance(flt, FieldFilter)
        query.order_by.assert_called_once()
        self.assertEqual(query.order_by.call_args.args, ("timestamp",))
        query.limit.assert_called_once_with(10)


if __name__ == "__main__":
    unittest.main()
