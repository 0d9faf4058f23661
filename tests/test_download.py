import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest

from inkfeed.download import (
    USER_AGENT,
    Download,
    DownloadGroup,
    DownloadManager,
    fetch,
    reader_mode_download_for,
)


def _wait_finished(download, limit=500):
    for _ in range(limit):
        download.check()
        if download.finished:
            return True
        time.sleep(0.01)
    return False


def _drain(manager, limit=500):
    for _ in range(limit):
        if not manager.check():
            return True
        time.sleep(0.01)
    return False


def _ok_fetcher(url):
    return ("body of " + url).encode()


def _failing_fetcher(url):
    raise OSError("no route")


class _EchoHandler(BaseHTTPRequestHandler):
    def do_GET(self):
        body = self.headers.get("User-Agent", "").encode()
        self.send_response(200)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, *args):
        pass


@pytest.fixture
def server_url():
    server = ThreadingHTTPServer(("127.0.0.1", 0), _EchoHandler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{server.server_address[1]}/feed"
    server.shutdown()
    server.server_close()


def test_fetch_sends_user_agent(server_url):
    assert fetch(server_url, 5.0) == USER_AGENT.encode()


def test_download_host_name():
    download = Download("https://example.com/feed.rss", "out.xml")
    assert download.host_name == "example.com"
    assert download.remaining_tries == 2
    assert not download.launched


def test_download_success_writes_file(tmp_path):
    target = tmp_path / "sub" / "out.xml"
    download = Download("https://example.com/a", str(target), fetcher=_ok_fetcher)
    download.launch()
    assert _wait_finished(download)
    assert download.succeeded
    assert target.read_bytes() == b"body of https://example.com/a"
    assert download.remaining_tries == 1


def test_download_failure_is_not_success(tmp_path):
    target = tmp_path / "out.xml"
    download = Download("https://example.com/a", str(target), fetcher=_failing_fetcher)
    download.launch()
    assert _wait_finished(download)
    assert not download.succeeded
    assert target.read_bytes() == b""


def test_check_before_launch_does_nothing(tmp_path):
    download = Download("https://example.com/a", str(tmp_path / "x"), fetcher=_ok_fetcher)
    download.check()
    assert not download.finished
    assert not (tmp_path / "x").exists()


def test_group_is_finished():
    assert DownloadGroup().is_finished()
    group = DownloadGroup([Download("https://example.com/a", "a")])
    assert not group.is_finished()
    group.downloads[0].finished = True
    assert group.is_finished()


def test_no_connection_queues_nothing():
    manager = DownloadManager(connect=lambda: False)
    assert manager.add_download(Download("https://example.com/a", "a")) is False
    assert manager.groups == []


def test_first_inserts_at_front():
    manager = DownloadManager()
    later = DownloadGroup([Download("https://example.com/a", "a")])
    sooner = DownloadGroup([Download("https://example.com/b", "b")])
    manager.add_download_group(later)
    manager.add_download_group(sooner, True)
    assert manager.groups == [sooner, later]


def test_remove_duplicates_keeps_first_path():
    manager = DownloadManager()
    manager.add_download_group(DownloadGroup([Download("https://example.com/a", "same")]))
    manager.add_download_group(
        DownloadGroup([Download("https://example.com/b", "same"), Download("https://example.com/c", "other")])
    )
    paths = [[d.out_file_path for d in g.downloads] for g in manager.groups]
    assert paths == [["same"], ["other"]]


def test_manager_runs_group_to_completion(tmp_path):
    started, finished, groups_done = [], [], []
    downloads = [
        Download(
            f"https://example.com/{name}",
            str(tmp_path / name),
            on_finished=finished.append,
            on_started=started.append,
            fetcher=_ok_fetcher,
        )
        for name in ("a", "b", "c")
    ]
    manager = DownloadManager()
    manager.add_download_group(DownloadGroup(downloads, lambda: groups_done.append(True)))
    assert _drain(manager)
    assert set(started) == set(downloads)
    assert set(finished) == set(downloads)
    assert groups_done == [True]
    assert all(d.succeeded for d in downloads)
    assert (tmp_path / "b").read_bytes() == b"body of https://example.com/b"
    assert manager.groups == []


def test_failed_download_is_retried_once(tmp_path):
    calls = []

    def fetcher(url):
        calls.append(url)
        raise OSError("down")

    finished = []
    download = Download("https://example.com/a", str(tmp_path / "a"), on_finished=finished.append, fetcher=fetcher)
    manager = DownloadManager()
    manager.add_download(download)
    assert _drain(manager)
    assert len(calls) == 2
    assert finished == [download]
    assert not download.succeeded
    assert download.remaining_tries == 0


def test_per_host_limit(tmp_path):
    release = threading.Event()

    def fetcher(url):
        release.wait(5)
        return b"x"

    downloads = [Download(f"https://example.com/{i}", str(tmp_path / str(i)), fetcher=fetcher) for i in range(7)]
    manager = DownloadManager()
    manager.add_download_group(DownloadGroup(downloads))
    manager.check()
    try:
        assert sum(d.launched for d in downloads) == manager.max_parallel_downloads_by_host
    finally:
        release.set()
    assert _drain(manager)
    assert all(d.succeeded for d in downloads)


def test_global_limit(tmp_path):
    release = threading.Event()

    def fetcher(url):
        release.wait(5)
        return b"x"

    downloads = [Download(f"https://host{i}.example.com/f", str(tmp_path / str(i)), fetcher=fetcher) for i in range(6)]
    manager = DownloadManager(max_parallel_downloads=3)
    manager.add_download_group(DownloadGroup(downloads))
    manager.check()
    try:
        assert sum(d.launched for d in downloads) == 3
    finally:
        release.set()
    assert _drain(manager)
    assert all(d.finished for d in downloads)


def test_lost_connection_on_retry_clears_queue(tmp_path):
    state = {"online": True}
    download = Download("https://example.com/a", str(tmp_path / "a"), fetcher=_failing_fetcher)
    manager = DownloadManager(connect=lambda: state["online"])
    manager.add_download(download)
    manager.check()
    state["online"] = False
    assert _drain(manager)
    assert manager.groups == []
    assert download.remaining_tries == 1


def test_reader_mode_path_without_owner():
    download = reader_mode_download_for("https://example.com/a/b?c=d", "/cache")
    assert download.out_file_path.startswith("/cache/example.com/")
    assert download.out_file_path.endswith("/example.comabcd_dl.html")
    assert download.url == "https://example.com/a/b?c=d"


def test_reader_mode_path_with_owner():
    download = reader_mode_download_for(
        "https://news.example.org/story", "/cache", "https://feeds.example.com/rss", "My: Feed"
    )
    parts = download.out_file_path.split("/")
    assert "feeds.example.com" in parts
    assert "My Feed" in parts
    assert download.host_name == "news.example.org"


def test_reader_mode_reddit_url_points_to_comment_feed():
    download = reader_mode_download_for(
        "https://www.reddit.com/r/x/comments/abc123/some_title/", "/cache"
    )
    assert download.url == "https://www.reddit.com/r/x/comments/abc123/.rss"
    assert "comments" in download.out_file_path