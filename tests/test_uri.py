import unittest

from obsfs.uri import URI


class URITests(unittest.TestCase):
    def test_parse_splits_protocol_bucket_and_key(self):
        uri = URI.parse("obs://bucket/models/part-0")

        self.assertEqual("obs://", uri.protocol)
        self.assertEqual("bucket", uri.bucket)
        self.assertEqual("/models/part-0", uri.key)
        self.assertEqual("models/part-0", uri.transport_key)
        self.assertEqual("obs://bucket/models/part-0", str(uri))

    def test_parse_bucket_only(self):
        uri = URI.parse("obs://bucket")

        self.assertEqual("bucket", uri.bucket)
        self.assertEqual("", uri.key)
        self.assertEqual("", uri.transport_key)

    def test_plain_path_is_local(self):
        uri = URI.parse("data/part-0")

        self.assertEqual("", uri.protocol)
        self.assertEqual("", uri.bucket)
        self.assertEqual("data/part-0", uri.key)
        self.assertEqual("data/part-0", str(uri))

    def test_directory_detection_is_syntactic(self):
        self.assertTrue(URI.parse("obs://bucket/dir/").is_directory)
        self.assertFalse(URI.parse("obs://bucket/dir").is_directory)

    def test_strip_trailing_slash_keeps_root(self):
        self.assertEqual("/dir", URI.parse("obs://bucket/dir//").strip_trailing_slash().key)
        self.assertEqual("/", URI.parse("obs://bucket/").strip_trailing_slash().key)

    def test_basename_parent_and_join(self):
        uri = URI.parse("obs://bucket/a/b/c.bin")

        self.assertEqual("c.bin", uri.basename)
        self.assertEqual("obs://bucket/a/b/", str(uri.parent))
        self.assertEqual("obs://bucket/a/b/d.bin", str(uri.parent.join("d.bin")))
        self.assertEqual("obs://bucket/", str(URI.parse("obs://bucket/top").parent))
        self.assertEqual("./", URI.parse("part-0").parent.key)

    def test_equality_covers_all_fields(self):
        self.assertEqual(URI.parse("obs://b/k"), URI("obs://", "b", "/k"))
        self.assertNotEqual(URI.parse("obs://b/k"), URI.parse("obs://c/k"))
        self.assertNotEqual(URI.parse("obs://b/k"), URI.parse("s3://b/k"))


if __name__ == "__main__":
    unittest.main()
