import unittest
from unittest.mock import MagicMock, patch

from portal.storage import FirebaseStorageClient, InMemoryStorageClient, S3StorageClient


class InMemoryStorageClientTests(unittest.TestCase):
    def test_round_trip_and_signing(self):
        storage = InMemoryStorageClient()
        storage.upload_bytes("community_feedback/x/log.txt", b"trace", "text/plain")
        self.assertEqual(storage.get_bytes("community_feedback/x/log.txt"), b"trace")
        self.assertEqual(
            storage.signed_url("community_feedback/x/log.txt", expires_in=60),
            "https://example.test/storage/community_feedback/x/log.txt?expires=60",
        )
        with self.assertRaises(FileNotFoundError):
            storage.get_bytes("missing")


class S3StorageClientTests(unittest.TestCase):
    @patch("portal.storage.boto3.client")
    def test_put_and_presign(self, mock_client):
        s3 = mock_client.return_value
        s3.generate_presigned_url.return_value = "https://bucket.example/signed"
        storage = S3StorageClient(
            bucket="henu-uploads",
            region="eu-west-1",
            endpoint="",
            access_key_id="key",
            secret_access_key="secret",
        )

        storage.upload_bytes("team_applications/a/photo-me.png", b"png", "image/png")
        s3.put_object.assert_called_once_with(
            Bucket="henu-uploads",
            Key="team_applications/a/photo-me.png",
            Body=b"png",
            ContentType="image/png",
        )
        self.assertEqual(
            storage.signed_url("team_applications/a/photo-me.png", 120),
            "https://bucket.example/signed",
        )
        self.assertEqual(s3.generate_presigned_url.call_args.kwargs["ExpiresIn"], 120)
        self.assertIsNone(mock_client.call_args.kwargs["endpoint_url"])


class FirebaseStorageClientTests(unittest.TestCase):
    @patch("portal.storage.firebase_storage.bucket")
    def test_upload_uses_blob(self, mock_bucket):
        blob = mock_bucket.return_value.blob.return_value
        storage = FirebaseStorageClient("henu-os.appspot.com", app=MagicMock())

        storage.upload_bytes("community_feedback/x/log.txt", b"trace", "text/plain")
        blob.upload_from_string.assert_called_once_with(
            b"trace", content_type="text/plain"
        )
        storage.signed_url("community_feedback/x/log.txt")
        self.assertEqual(blob.generate_signed_url.call_args.kwargs["version"], "v4")


if __name__ == "__main__":
    unittest.main()
