import time

import pytest
from werkzeug import Response

from cumulus_ecs_task.exceptions import DownloadError
from cumulus_ecs_task.utils.http import download


class TestDownload:
    def test_download(self, httpserver, tmp_path):
        httpserver.expect_request("/archive.zip").respond_with_data(b"x" * 3000)
        target = tmp_path / "nested" / "archive.zip"

        assert download(httpserver.url_for("/archive.zip"), str(target), timeout=5) == 3000
        assert target.read_bytes() == b"x" * 3000

    def test_error_response(self, httpserver, tmp_path):
        httpserver.expect_request("/archive.zip").respond_with_data("not found", status=404)

        with pytest.raises(DownloadError, match="404"):
            download(httpserver.url_for("/archive.zip"), str(tmp_path / "archive.zip"), timeout=5)

    def test_timeout(self, httpserver, tmp_path):
        def _handler(request):
            time.sleep(0.5)
            return Response(b"too late")

        httpserver.expect_request("/archive.zip").respond_with_handler(_handler)

        with pytest.raises(TimeoutError):
            download(httpserver.url_for("/archive.zip"), str(tmp_path / "archive.zip"), timeout=0.1)

    def test_connection_error(self, tmp_path):
        # nothing listens on port 9 of the loopback interface
        with pytest.raises(DownloadError):
            download("http://127.0.0.1:9/archive.zip", str(tmp_path / "archive.zip"), timeout=5)
