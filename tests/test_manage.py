import io
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path
from unittest.mock import patch

from blogcms import manage
from blogcms.services.auth import verify_password
from blogcms.storage.filesystem import FileStorage
from tests.support import make_settings

POST = "---\ntitle: {title}\ndescription: Imported\ndate: 2024-01-01\ntags: [Import]\n---\nBody\n"


class TestManageCommands(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.root = Path(self.tmp.name)
        self.settings = make_settings(self.root / "content", storage_backend="filesystem")
        patcher = patch.object(manage, "get_settings", return_value=self.settings)
        patcher.start()
        self.addCleanup(patcher.stop)

    def tearDown(self):
        self.tmp.cleanup()

    def run_command(self, *argv):
        out = io.StringIO()
        with redirect_stdout(out):
            code = manage.main(list(argv))
        return code, out.getvalue()

    def test_hash_password(self):
        code, output = self.run_command("hash-password", "s3cret")
        self.assertEqual(code, 0)
        self.assertTrue(verify_password("s3cret", output.strip()))

    def test_import_content_skips_existing(self):
        source = self.root / "export"
        source.mkdir()
        (source / "first.mdx").write_text(POST.format(title="First"), encoding="utf-8")
        (source / "second.mdx").write_text(POST.format(title="Second"), encoding="utf-8")

        code, output = self.run_command("import-content", str(source))
        self.assertEqual(code, 0)
        self.assertIn("Imported 2 posts", output)

        code, output = self.run_command("import-content", str(source))
        self.assertIn("Imported 0 posts", output)
        self.assertIn("2 already present", output)

        storage = FileStorage(self.settings.posts_dir, self.settings.backups_dir, self.settings.images_dir)
        self.assertEqual(sorted(post.id for post in storage.posts.list()), ["first", "second"])

    def test_import_from_missing_directory(self):
        code, _ = self.run_command("import-content", str(self.root / "nope"))
        self.assertEqual(code, 1)

    def test_check_storage(self):
        code, output = self.run_command("check-storage")
        self.assertEqual(code, 0)
        self.assertIn("filesystem storage OK (0 posts)", output)

    def test_misconfigured_backend_reports_an_error_line(self):
        mongo_settings = make_settings(self.root / "content", storage_backend="mongodb", mongodb_uri=None)
        source = self.root / "export"
        source.mkdir()
        for argv in (["check-storage"], ["import-content", str(source)]):
            with self.subTest(argv=argv):
                err = io.StringIO()
                with patch.object(manage, "get_settings", return_value=mongo_settings), redirect_stderr(err):
                    code, _ = self.run_command(*argv)
                self.assertEqual(code, 1)
                self.assertIn("mongodb storage error: MONGODB_URI must be set", err.getvalue())


if __name__ == "__main__":
    unittest.main()
