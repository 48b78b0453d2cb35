import tempfile
import unittest
from pathlib import Path

from fastapi.testclient import TestClient

from blogcms.main import create_app
from blogcms.routes.auth import limiter
from blogcms.schemas import MAX_CONTENT_LENGTH
from blogcms.services.auth import AUTH_COOKIE_NAME
from tests.support import ADMIN_PASSWORD, ADMIN_USERNAME, make_settings, post_data

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


class ApiTestCase(unittest.TestCase):
    backend = "memory"

    def setUp(self):
        limiter.reset()
        self.tmp = tempfile.TemporaryDirectory()
        self.settings = make_settings(self.tmp.name, storage_backend=self.backend)
        self.client = TestClient(create_app(self.settings))
        self.client.__enter__()

    def tearDown(self):
        self.client.__exit__(None, None, None)
        self.tmp.cleanup()

    def login(self):
        response = self.client.post(
            "/api/admin/login",
            json={"username": ADMIN_USERNAME, "password": ADMIN_PASSWORD},
        )
        self.assertEqual(response.status_code, 200)
        return response

    def create_post(self, **overrides):
        response = self.client.post("/api/admin/posts", json=post_data(**overrides))
        self.assertEqual(response.status_code, 201, response.text)
        return response.json()["post"]


class TestAuthApi(ApiTestCase):
    def test_login_sets_http_only_cookie(self):
        response = self.login()
        self.assertEqual(response.json(), {"success": True, "user": {"username": ADMIN_USERNAME, "isAdmin": True}})

        set_cookie = response.headers["set-cookie"]
        self.assertIn(f"{AUTH_COOKIE_NAME}=", set_cookie)
        self.assertIn("HttpOnly", set_cookie)
        self.assertIn("Max-Age=600", set_cookie)
        self.assertIn("samesite=strict", set_cookie.lower())

        me = self.client.get("/api/admin/me")
        self.assertEqual(me.status_code, 200)
        self.assertEqual(me.json()["user"]["username"], ADMIN_USERNAME)

    def test_bad_credentials(self):
        response = self.client.post("/api/admin/login", json={"username": ADMIN_USERNAME, "password": "nope"})
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json(), {"error": "Invalid credentials"})
        self.assertNotIn(AUTH_COOKIE_NAME, response.cookies)

    def test_malformed_login_body(self):
        response = self.client.post("/api/admin/login", json={"username": ADMIN_USERNAME})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "Invalid input data")
        self.assertEqual(response.json()["details"][0]["field"], "password")

    def test_logout_clears_session(self):
        self.login()
        self.assertEqual(self.client.post("/api/admin/logout").status_code, 200)
        self.assertEqual(self.client.get("/api/admin/me").status_code, 401)

    def test_invalid_cookie_is_unauthorized(self):
        self.client.cookies.set(AUTH_COOKIE_NAME, "not-a-token")
        response = self.client.get("/api/admin/posts")
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json(), {"error": "Unauthorized"})

    def test_login_is_rate_limited(self):
        for _ in range(5):
            self.client.post("/api/admin/login", json={"username": ADMIN_USERNAME, "password": "wrong"})
        response = self.client.post("/api/admin/login", json={"username": ADMIN_USERNAME, "password": "wrong"})
        self.assertEqual(response.status_code, 429)
        self.assertEqual(response.json(), {"error": "Too many requests"})


class TestAdminPostsApi(ApiTestCase):
    def test_requires_admin(self):
        for method, path in [
            ("get", "/api/admin/posts"),
            ("post", "/api/admin/posts"),
            ("get", "/api/admin/posts/anything"),
            ("delete", "/api/admin/posts/anything"),
            ("get", "/api/admin/images"),
        ]:
            with self.subTest(method=method, path=path):
                response = getattr(self.client, method)(path)
                self.assertEqual(response.status_code, 401)

    def test_crud(self):
        self.login()
        created = self.create_post()
        self.assertEqual(created["id"], "getting-started-with-react")
        self.assertEqual(created["slug"], "react")

        response = self.client.get(f"/api/admin/posts/{created['id']}")
        self.assertEqual(response.json()["post"]["content"], post_data()["content"])

        response = self.client.put(f"/api/admin/posts/{created['id']}", json={"description": "Changed"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["post"]["description"], "Changed")
        self.assertEqual(response.json()["post"]["title"], post_data()["title"])

        response = self.client.delete(f"/api/admin/posts/{created['id']}")
        self.assertEqual(response.json(), {"success": True, "message": "Post deleted successfully"})
        self.assertEqual(self.client.get(f"/api/admin/posts/{created['id']}").status_code, 404)

    def test_duplicate_title_conflicts(self):
        self.login()
        self.create_post()
        response = self.client.post("/api/admin/posts", json=post_data())
        self.assertEqual(response.status_code, 409)
        self.assertIn("already exists", response.json()["error"])

    def test_validation_details(self):
        self.login()
        response = self.client.post("/api/admin/posts", json=post_data(tags=[], date="someday"))
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["details"], ["Invalid date format", "At least one tag is required"])

    def test_oversized_content_is_rejected(self):
        self.login()
        too_long = "a" * (MAX_CONTENT_LENGTH + 1)
        response = self.client.post("/api/admin/posts", json=post_data(content=too_long))
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "Invalid input data")

        created = self.create_post()
        response = self.client.put(f"/api/admin/posts/{created['id']}", json={"content": too_long})
        self.assertEqual(response.status_code, 400)

    def test_admin_listing_includes_drafts(self):
        self.login()
        self.create_post()
        self.create_post(title="Draft", published=False)

        everything = self.client.get("/api/admin/posts").json()
        self.assertEqual(everything["total"], 2)
        drafts = self.client.get("/api/admin/posts", params={"published": "false"}).json()
        self.assertEqual([post["id"] for post in drafts["posts"]], ["draft"])
        self.assertNotIn("content", drafts["posts"][0])


class TestPublicPostsApi(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.login()
        for index in range(3):
            self.create_post(title=f"Post {index}", date=f"2024-05-0{index + 1}", tags=["Python", "Testing"])
        self.create_post(title="Hidden draft", published=False)
        self.create_post(title="Old React", date="2023-01-01", url="legacy-react")
        self.client.post("/api/admin/logout")

    def test_listing(self):
        response = self.client.get("/api/posts", params={"limit": 2})
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual([post["id"] for post in body["posts"]], ["post-2", "post-1"])
        self.assertEqual(body["total"], 4)
        self.assertTrue(body["hasMore"])
        self.assertNotIn("content", body["posts"][0])
        self.assertIn("preview", body["posts"][0])
        self.assertEqual(response.headers["cache-control"], "public, max-age=60")

    def test_tag_and_search_filters(self):
        by_tag = self.client.get("/api/posts", params={"tag": "testing"}).json()
        self.assertEqual(by_tag["total"], 3)
        by_search = self.client.get("/api/posts", params={"q": "old"}).json()
        self.assertEqual([post["id"] for post in by_search["posts"]], ["old-react"])

    def test_invalid_paging(self):
        for params in [{"page": 0}, {"limit": 0}, {"limit": 51}]:
            with self.subTest(params=params):
                response = self.client.get("/api/posts", params=params)
                self.assertEqual(response.status_code, 400)
                self.assertIn("error", response.json())

    def test_single_post(self):
        response = self.client.get("/api/posts/post-1")
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["title"], "Post 1")
        self.assertIn("<h1", body["html"])
        self.assertEqual(body["content"], post_data()["content"])

        self.assertEqual(self.client.get("/api/posts/legacy-react").json()["id"], "old-react")
        self.assertEqual(self.client.get("/api/posts/hidden-draft").status_code, 404)
        self.assertEqual(self.client.get("/api/posts/missing").json(), {"error": "Post not found"})

    def test_writes_require_admin(self):
        self.assertEqual(self.client.post("/api/posts", json=post_data(title="New")).status_code, 401)
        self.assertEqual(self.client.put("/api/posts/post-1", json={"title": "x"}).status_code, 401)
        self.assertEqual(self.client.delete("/api/posts/post-1").status_code, 401)

    def test_admin_writes_through_public_routes(self):
        self.login()
        response = self.client.post("/api/posts", json=post_data(title="Via Public"))
        self.assertEqual(response.status_code, 201)
        response = self.client.put("/api/posts/legacy-react", json={"title": "Renamed"})
        self.assertEqual(response.json()["post"]["id"], "old-react")
        self.assertEqual(response.json()["post"]["title"], "Renamed")
        self.assertEqual(self.client.delete("/api/posts/via-public").status_code, 200)

    def test_tags(self):
        tags = self.client.get("/api/tags").json()["tags"]
        self.assertEqual(
            tags,
            [
                {"name": "JavaScript", "slug": "javascript", "count": 1},
                {"name": "Python", "slug": "python", "count": 3},
                {"name": "React", "slug": "react", "count": 1},
                {"name": "Testing", "slug": "testing", "count": 3},
            ],
        )

    def test_category_lookup(self):
        self.assertEqual(self.client.get("/api/tags/python/posts/post-0").json()["id"], "post-0")
        self.assertEqual(self.client.get("/api/tags/testing/posts/post-0").status_code, 404)

    def test_seo_documents(self):
        sitemap = self.client.get("/sitemap.xml")
        self.assertEqual(sitemap.headers["content-type"], "application/xml")
        self.assertIn("<loc>https://blog.example.com/python/post-0</loc>", sitemap.text)
        self.assertNotIn("hidden-draft", sitemap.text)

        feed = self.client.get("/feed.xml")
        self.assertIn("<title>Example Blog</title>", feed.text)
        self.assertIn("<title>Post 2</title>", feed.text)

        robots = self.client.get("/robots.txt")
        self.assertIn("Sitemap: https://blog.example.com/sitemap.xml", robots.text)

    def test_security_headers(self):
        response = self.client.get("/api/posts")
        self.assertEqual(response.headers["x-content-type-options"], "nosniff")
        self.assertEqual(response.headers["x-frame-options"], "DENY")
        self.assertIn("default-src 'none'", response.headers["content-security-policy"])
        self.assertNotIn("strict-transport-security", response.headers)

        error = self.client.get("/api/admin/me")
        self.assertEqual(error.headers["cache-control"], "no-store, no-cache, must-revalidate")

    def test_health(self):
        response = self.client.get("/health")
        self.assertEqual(response.json(), {"status": "ok", "storage": "memory"})


class TestImagesApi(ApiTestCase):
    def upload(self, content=PNG_BYTES, filename="cover.png", mime_type="image/png"):
        return self.client.post("/api/admin/upload", files={"image": (filename, content, mime_type)})

    def test_upload_and_serve(self):
        self.login()
        response = self.upload()
        self.assertEqual(response.status_code, 200, response.text)
        body = response.json()
        self.assertTrue(body["success"])
        self.assertRegex(body["imageUrl"], r"^/api/images/cover-\d+-[a-z0-9]{6}\.png$")

        self.client.post("/api/admin/logout")
        image = self.client.get(body["imageUrl"])
        self.assertEqual(image.status_code, 200)
        self.assertEqual(image.content, PNG_BYTES)
        self.assertEqual(image.headers["content-type"], "image/png")
        self.assertEqual(image.headers["cache-control"], "public, max-age=31536000, immutable")

    def test_upload_requires_admin(self):
        self.assertEqual(self.upload().status_code, 401)

    def test_stored_extension_follows_validated_type(self):
        self.login()
        response = self.upload(b"<html><script>alert(1)</script></html>", "evil.html", "image/png")
        self.assertEqual(response.status_code, 200, response.text)
        url = response.json()["imageUrl"]
        self.assertRegex(url, r"^/api/images/evil-\d+-[a-z0-9]{6}\.png$")
        self.assertEqual(self.client.get(url).headers["content-type"], "image/png")

    def test_rejected_uploads(self):
        self.login()
        svg = self.upload(b"<svg/>", "x.svg", "image/svg+xml")
        self.assertEqual(svg.status_code, 400)
        self.assertEqual(svg.json()["details"], ["Only JPEG, PNG, WebP, and GIF images are allowed"])

        too_big = self.upload(b"\x00" * (5 * 1024 * 1024 + 1))
        self.assertEqual(too_big.status_code, 400)
        self.assertEqual(too_big.json()["details"], ["Image size must be less than 5MB"])

        missing = self.client.post("/api/admin/upload", data={"other": "field"})
        self.assertEqual(missing.status_code, 400)
        self.assertEqual(missing.json(), {"error": "No image file provided"})

    def test_list_and_delete(self):
        self.login()
        filename = self.upload().json()["imageUrl"].rsplit("/", 1)[-1]

        images = self.client.get("/api/admin/images").json()["images"]
        self.assertEqual([image["filename"] for image in images], [filename])

        self.assertEqual(self.client.delete(f"/api/admin/images/{filename}").json(), {"success": True})
        self.assertEqual(self.client.get(f"/api/images/{filename}").status_code, 404)
        self.assertEqual(self.client.delete(f"/api/admin/images/{filename}").status_code, 404)


class TestFilesystemBackendApi(ApiTestCase):
    backend = "filesystem"

    def test_posts_and_images_land_on_disk(self):
        self.login()
        created = self.create_post()
        self.assertTrue((self.settings.posts_dir / f"{created['id']}.mdx").is_file())

        url = self.client.post(
            "/api/admin/upload", files={"image": ("cover.png", PNG_BYTES, "image/png")}
        ).json()["imageUrl"]
        self.assertTrue((self.settings.images_dir / url.rsplit("/", 1)[-1]).is_file())

        self.client.delete(f"/api/admin/posts/{created['id']}")
        self.assertEqual(len(list(self.settings.backups_dir.iterdir())), 1)

    def test_mismatched_upload_is_served_as_its_validated_type(self):
        self.login()
        url = self.client.post(
            "/api/admin/upload", files={"image": ("evil.html", b"<html></html>", "image/png")}
        ).json()["imageUrl"]
        self.assertTrue(url.endswith(".png"))
        self.assertEqual(self.client.get(url).headers["content-type"], "image/png")

        url = self.client.post(
            "/api/admin/upload", files={"image": ("anim", b"RIFF", "image/webp")}
        ).json()["imageUrl"]
        self.assertEqual(self.client.get(url).headers["content-type"], "image/webp")


class TestSeededMemoryBackend(unittest.TestCase):
    def test_posts_are_loaded_from_content_dir(self):
        with tempfile.TemporaryDirectory() as tmp:
            posts_dir = Path(tmp) / "posts"
            posts_dir.mkdir()
            (posts_dir / "hello-world.mdx").write_text(
                "---\ntitle: Hello World\ndescription: First\ndate: 2024-01-01\ntags: [Intro]\n---\nHi\n",
                encoding="utf-8",
            )
            settings = make_settings(tmp, storage_backend="memory", seed_content=True)
            with TestClient(create_app(settings)) as client:
                body = client.get("/api/posts").json()
                self.assertEqual([post["id"] for post in body["posts"]], ["hello-world"])


if __name__ == "__main__":
    unittest.main()
