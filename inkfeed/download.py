"""Background downloads with per-host and global concurrency limits."""

from __future__ import annotations

import logging
import ssl
import threading
import time
import urllib.request
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from inkfeed.paths import convert_to_valid_filename, get_host_name

logger = logging.getLogger(__name__)

USER_AGENT = "Mozilla/5.0 (X11; Linux i686; rv:78.0) Gecko/20100101 SimpleNewsFeed/0.1"
TRANSFER_TIMEOUT = 60.0
DEFAULT_TRIES = 2

Fetcher = Callable[[str], bytes]
DownloadCallback = Callable[["Download"], None]


def fetch(url: str, timeout: float = TRANSFER_TIMEOUT) -> bytes:
    """Fetch ``url`` following redirects and return the response body.

    Certificates are not verified, so feeds served with broken TLS setups still load.
    """
    context = ssl.create_default_context()
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    request = urllib.request.Request(url, headers={"User-Agent": USER_AGENT})
    with urllib.request.urlopen(request, timeout=timeout, context=context) as response:
        return response.read()


@dataclass(eq=False)
class Download:
    """One URL to fetch into a local file, run on a background thread."""

    url: str
    out_file_path: str
    on_finished: Optional[DownloadCallback] = None
    timeout: float = 10.0
    on_started: Optional[DownloadCallback] = None
    fetcher: Fetcher = fetch
    remaining_tries: int = field(default=DEFAULT_TRIES, init=False)
    succeeded: bool = field(default=False, init=False)
    launched: bool = field(default=False, init=False)
    finished: bool = field(default=False, init=False)
    host_name: str = field(default="", init=False)
    _thread: Optional[threading.Thread] = field(default=None, init=False, repr=False)
    _data: Optional[bytes] = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        self.host_name = get_host_name(self.url)

    def _worker(self) -> None:
        try:
            self._data = self.fetcher(self.url)
        except Exception as error:  # the transfer failed; an empty body marks it
            logger.warning("Download of %s failed: %s", self.url, error)
            self._data = b""

    def launch(self) -> None:
        """Start fetching on a background thread."""
        self.launched = True
        self.succeeded = False
        self.finished = False
        self._data = None
        self._thread = threading.Thread(target=self._worker, daemon=True)
        try:
            self._thread.start()
        except RuntimeError:
            logger.error("Could not start download thread for %s", self.url)
            self._thread = None
            self.succeeded = False
            self.finished = True
            self._terminate()

    def check(self) -> None:
        """Once the thread is done, write the body to disk and mark the download finished."""
        if self.finished or not self.launched:
            return
        if self._thread is not None and self._thread.is_alive():
            return
        data = self._data or b""
        path = Path(self.out_file_path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
            written = len(data)
        except OSError as error:
            logger.error("Could not write %s: %s", path, error)
            written = 0
        self._terminate()
        self.succeeded = written > 0
        self.finished = True

    def _terminate(self) -> None:
        self.remaining_tries -= 1
        self._thread = None
        self._data = None


@dataclass(eq=False)
class DownloadGroup:
    """Downloads that finish together, with a callback run once all are done."""

    downloads: list[Download] = field(default_factory=list)
    on_group_finished: Optional[Callable[[], None]] = None

    def is_finished(self) -> bool:
        """True when every download in the group has finished."""
        return all(download.finished for download in self.downloads)


class DownloadManager:
    """Queue of download groups, launched under global and per-host limits."""

    def __init__(
        self,
        max_parallel_downloads: int = 16,
        max_parallel_downloads_by_host: int = 5,
        connect: Optional[Callable[[], bool]] = None,
    ) -> None:
        self.max_parallel_downloads = max_parallel_downloads
        self.max_parallel_downloads_by_host = max_parallel_downloads_by_host
        self.connect: Callable[[], bool] = connect or (lambda: True)
        self.groups: list[DownloadGroup] = []

    def add_download(self, download: Download, first: bool = False) -> bool:
        """Queue a single download as its own group."""
        return self.add_download_group(DownloadGroup([download]), first)

    def add_download_group(self, group: DownloadGroup, first: bool = False) -> bool:
        """Queue a group at the front or back; nothing is queued without a connection."""
        if not self.connect():
            return False
        if first:
            self.groups.insert(0, group)
        else:
            self.groups.append(group)
        self.remove_duplicates()
        return True

    def remove_duplicates(self) -> None:
        """Drop queued, unlaunched downloads whose target file is already queued."""
        seen: set[str] = set()
        for group in self.groups:
            kept = []
            for download in group.downloads:
                if not download.launched and download.out_file_path in seen:
                    continue
                if not download.launched:
                    seen.add(download.out_file_path)
                kept.append(download)
            group.downloads = kept

    def check(self) -> bool:
        """Advance every download once; returns True while work remains."""
        for group in self.groups:
            for download in group.downloads:
                download.check()

        finished: list[Download] = []
        remaining_slots = self.max_parallel_downloads
        slots_by_host: dict[str, int] = {}
        for group in self.groups:
            for download in group.downloads:
                slots_by_host.setdefault(download.host_name, 0)

                if download.finished:
                    if not download.succeeded and download.remaining_tries > 0:
                        logger.info("Retrying %s", download.url)
                        if not self.connect():
                            self.groups.clear()
                            return False
                        download.launch()
                        slots_by_host[download.host_name] += 1
                        remaining_slots -= 1
                        continue
                    finished.append(download)
                    continue

                if (
                    remaining_slots > 0
                    and slots_by_host[download.host_name] < self.max_parallel_downloads_by_host
                ):
                    if not download.launched:
                        if download.on_started:
                            download.on_started(download)
                        download.launch()
                    remaining_slots -= 1
                    slots_by_host[download.host_name] += 1

            group.downloads = [d for d in group.downloads if not d.finished]

        for download in finished:
            if download.on_finished:
                download.on_finished(download)

        pending: list[DownloadGroup] = []
        done: list[DownloadGroup] = []
        for group in self.groups:
            (done if group.is_finished() else pending).append(group)
        self.groups = pending
        for group in done:
            logger.info("Download group finished")
            if group.on_group_finished:
                group.on_group_finished()

        return bool(self.groups)

    def run(self, interval: float = 0.5) -> None:
        """Call :meth:`check` every ``interval`` seconds until the queue is empty."""
        while self.check():
            time.sleep(interval)


def reader_mode_download_for(
    url: str,
    cache_dir: str,
    owner_url: Optional[str] = None,
    owner_title: Optional[str] = None,
) -> Download:
    """Build the download that stores a full article page in the feed's cache folder."""
    if owner_url is not None:
        host_name = get_host_name(owner_url) + "/"
        feed_name = owner_title or ""
    else:
        host_name = get_host_name(url) + "/"
        feed_name = ""
    feed_name = convert_to_valid_filename(feed_name)

    protocol_end = url.find("://")
    start = protocol_end + 3 if protocol_end != -1 else 0
    file_name = convert_to_valid_filename(url[start:])
    file_path = f"{cache_dir}/{host_name}/{feed_name}/{file_name}_dl.html"

    if "www.reddit.com" in url:
        comments_end = url.find("/comments/") + len("/comments/")
        cut = url.find("/", comments_end)
        if cut != -1:
            url = url[:cut] + "/.rss"

    return Download(url, file_path)