"""
Unit tests for the static file handler.
"""

import pytest

from kurt.handlers import StaticFileHandler, serve_static
from kurt.http import Request, set_mime_types


@pytest.fixture
def site_root(tmp_path):
    (tmp_path / "index.html").write_text("<h1>home</h1>")
    (tmp_path / "css").mkdir()
    (tmp_path / "css" / "site.css").write_text("body {}")
    (tmp_path / "empty").mkdir()
    (tmp_path / "notes.weird").write_text("?")
    return tmp_path


def request_for(remainder: str, **headers) -> Request:
    return Request("GET", "/static/" + remainder, headers=headers, path_params={"path": remainder})


class TestStaticFileHandler:
    """Tests for StaticFileHandler."""

    def test_serves_file_with_mime_type(self, site_root):
        handler = StaticFileHandler(site_root, param="path")
        response = handler(request_for("css/site.css"))

        assert response.status_code == 200
        assert response.body == b"body {}"
        assert response.headers["Content-Type"] == "text/css; charset=utf-8"
        assert response.headers["Content-Length"] == "7"
        assert response.headers["ETag"].startswith('"')
        assert "Last-Modified" in response.headers

    def test_directory_serves_index(self, site_root):
        response = StaticFileHandler(site_root, param="path")(request_for(""))

        assert response.status_code == 200
        assert response.body == b"<h1>home</h1>"

    def test_directory_without_index_forbidden(self, site_root):
        assert StaticFileHandler(site_root, param="path")(request_for("empty")).status_code == 403

    def test_missing_file_404(self, site_root):
        assert StaticFileHandler(site_root, param="path")(request_for("nope.txt")).status_code == 404

    def test_path_traversal_forbidden(self, site_root):
        handler = StaticFileHandler(site_root / "css", param="path")
        assert handler(request_for("../index.html")).status_code == 403

    def test_etag_not_modified(self, site_root):
        handler = StaticFileHandler(site_root, param="path")
        etag = handler(request_for("css/site.css")).headers["ETag"]

        response = handler(request_for("css/site.css", **{"If-None-Match": etag}))
        assert response.status_code == 304
        assert response.body == b""

    def test_uses_current_mime_table(self, site_root):
        set_mime_types({".weird": "text/x-weird"})
        response = StaticFileHandler(site_root, param="path")(request_for("notes.weird"))

        assert response.headers["Content-Type"] == "text/x-weird"

    def test_unknown_extension_is_octet_stream(self, site_root):
        response = StaticFileHandler(site_root, param="path")(request_for("notes.weird"))
        assert response.headers["Content-Type"] == "application/octet-stream"

    def test_url_prefix_fallback(self, site_root):
        handler = StaticFileHandler(site_root, url_prefix="/static")
        response = handler(Request("GET", "/static/css/site.css"))

        assert response.status_code == 200

    def test_missing_root_rejected(self, tmp_path):
        with pytest.raises(ValueError):
            StaticFileHandler(tmp_path / "missing")

    def test_serve_static_shorthand(self, site_root):
        handler = serve_static(site_root, "path")
        assert handler.param == "path"
