"""The feed reader application: navigation history, synchronisation and commands."""

from __future__ import annotations

import argparse
import logging
import shutil
import subprocess
import webbrowser
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Optional, Sequence

from inkfeed.download import Download, DownloadGroup, DownloadManager
from inkfeed.feed_list import FeedList
from inkfeed.news_feed import NewsFeed
from inkfeed.settings import AppSettings

logger = logging.getLogger(__name__)

VIEW_MAIN = "main"
VIEW_FEED_LIST = "feed_list"
VIEW_LAST_ENTRIES = "last_entries"
VIEW_FEED = "feed"
VIEW_ENTRY = "entry"


def launch_browser(url: str, browser: Optional[str] = None) -> bool:
    """Open ``url`` in ``browser`` and wait for it to exit.

    Without ``browser`` the system's default browser is used. Returns False
    when the given browser program does not exist.
    """
    logger.info("Launch browser: %s", url)
    if browser is None:
        return webbrowser.open(url)
    if not Path(browser).exists():
        logger.warning("Couldn't find the browser binary at %s", browser)
        return False
    subprocess.call([browser, url])
    return True


@dataclass
class HistoryItem:
    """One page in the navigation history."""

    feed_path: list[int] = field(default_factory=list)
    entry_index: int = -1
    page_index: int = 0
    last_entries_page_index: int = 0
    is_last_entries_display: bool = False


class App:
    """Feed tree, page history and download bookkeeping of the reader."""

    def __init__(
        self,
        settings: Optional[AppSettings] = None,
        cache_dir: Optional[str] = None,
        download_manager: Optional[DownloadManager] = None,
        browser: Optional[str] = None,
    ) -> None:
        self.settings = settings or AppSettings()
        self.cache_dir = cache_dir or str(self.settings.app_folder / "cache")
        self.download_manager = download_manager or DownloadManager()
        self.browser = browser
        self.feed_list = FeedList(self.cache_dir, self.settings.max_entry_to_keep_by_feed)
        self.history: list[HistoryItem] = []
        self.last_entry_read = HistoryItem()
        self.view = VIEW_MAIN
        self.nb_download_finished = 0
        self.nb_total_download = 0
        self.sync_in_progress = False

    # Start-up and persistence

    def initialize(self) -> None:
        """Load the settings and the saved feed list, then sync or show the main page."""
        self.settings.load_config()
        Path(self.cache_dir).mkdir(parents=True, exist_ok=True)
        self.feed_list = FeedList(self.cache_dir, self.settings.max_entry_to_keep_by_feed)
        self.feed_list.load_document(self.settings.path_to_saved_opml)
        if self.settings.synchronize_at_start:
            self.sync_all()
        else:
            self.open_main_page()

    def save(self) -> None:
        """Write every feed and the feed list to the saved OPML file."""
        self.feed_list.save_document(self.settings.path_to_saved_opml)

    def clear_cache(self) -> None:
        """Remove every cached feed and article file."""
        shutil.rmtree(self.cache_dir, ignore_errors=True)

    # Feed lookup

    def get_feed(self, feed_path: Sequence[int], max_size: Optional[int] = None) -> NewsFeed:
        """Follow ``feed_path`` from the root; indices out of range are skipped."""
        limit = len(feed_path) if max_size is None else max_size
        current = self.feed_list.root_feed
        for feed_index in list(feed_path)[: max(limit, 0)]:
            if 0 <= feed_index < len(current.news_feeds):
                current = current.news_feeds[feed_index]
        return current

    def get_parent_feed(self, feed_path: Sequence[int]) -> NewsFeed:
        """The folder holding the feed at ``feed_path``."""
        if not feed_path:
            raise ValueError("the root feed has no parent")
        return self.get_feed(feed_path, len(feed_path) - 1)

    # Synchronisation

    def sync_all(self) -> None:
        """Refresh every feed, unless a full synchronisation is already running."""
        if self.sync_in_progress:
            return
        self.sync_in_progress = True
        self._sync([])

    def sync_current(self) -> None:
        """Refresh the feed or folder shown on the current page."""
        if self.sync_in_progress:
            return
        feed_path: list[int] = []
        self.sync_in_progress = True
        if self.history:
            self.sync_in_progress = False
            feed_path = list(self.history[-1].feed_path)
        self._sync(feed_path)

    def _reset_counters(self) -> None:
        self.nb_total_download -= self.nb_download_finished
        self.nb_download_finished = 0

    def _track(self, downloads: list[Download]) -> None:
        for download in downloads:
            download.on_started = self._on_download_started
            download.on_finished = self._on_download_finished
            self.nb_total_download += 1

    def _sync(self, feed_path: list[int]) -> None:
        feed = self.get_feed(feed_path)
        self._reset_counters()
        downloads = feed.sync()
        self._track(downloads)
        path = list(feed_path)
        group = DownloadGroup(downloads, lambda: self._on_sync_finished(path))
        self.download_manager.add_download_group(group, True)

    def _on_download_started(self, download: Download) -> None:
        logger.debug("Download started: %s", download.url)

    def _on_download_finished(self, download: Download) -> None:
        self.nb_download_finished += 1

    def _on_sync_finished(self, feed_path: list[int]) -> None:
        feed = self.get_feed(feed_path)
        feed.load(True)

        if self.history and self.history[-1].feed_path == feed_path:
            item = self.history.pop()
            self.open_feed(item.feed_path, item.page_index, item.is_last_entries_display)

        self._reset_counters()
        downloads = feed.additional_sync()
        self._track(downloads)
        group = DownloadGroup(downloads, self._on_additional_sync_finished)
        self.download_manager.add_download_group(group, False)

    def _on_additional_sync_finished(self) -> None:
        self.sync_in_progress = False

    # Navigation

    def open_main_page(self) -> None:
        """Show the top-level feed list."""
        self.view = VIEW_MAIN
        self.history.append(HistoryItem())

    def open_feed(
        self, feed_path: Sequence[int], page_index: int = 0, show_last_entries: bool = False
    ) -> None:
        """Show a folder (as sub-feeds or latest entries) or a feed's entries."""
        path = list(feed_path)
        feed = self.get_feed(path)
        if feed.is_folder:
            if show_last_entries and not feed.is_loaded:
                feed.load()
            self.view = VIEW_LAST_ENTRIES if show_last_entries else VIEW_FEED_LIST
        else:
            if not feed.is_loaded:
                feed.load()
            self.view = VIEW_FEED

        item = HistoryItem(path)
        if show_last_entries:
            item.last_entries_page_index = page_index
        else:
            item.page_index = page_index
        item.is_last_entries_display = show_last_entries
        self.history.append(item)

    def open_entry(self, feed_path: Sequence[int], entry_index: int, page_index: int = 0) -> None:
        """Show one entry and mark it as read."""
        path = list(feed_path)
        feed = self.get_feed(path)
        if not 0 <= entry_index < len(feed.entries):
            raise IndexError(f"no entry {entry_index} in feed {path}")
        feed.entries[entry_index].mark_as_read()
        self.view = VIEW_ENTRY

        item = HistoryItem(path, entry_index, page_index)
        self.history.append(item)
        self.last_entry_read = HistoryItem(path, entry_index, page_index)

    def show_folders(self) -> None:
        """Switch the current folder page to its list of sub-feeds."""
        self._switch_folder_display(False)

    def show_last_entries(self) -> None:
        """Switch the current folder page to its latest entries."""
        self._switch_folder_display(True)

    def _switch_folder_display(self, last_entries: bool) -> None:
        if not self.history:
            return
        item = self.history[-1]
        feed = self.get_feed(item.feed_path)
        if not feed.is_folder:
            return
        if last_entries and not feed.is_loaded:
            feed.load()
        self.view = VIEW_LAST_ENTRIES if last_entries else VIEW_FEED_LIST
        item.is_last_entries_display = last_entries

    def go_back(self) -> None:
        """Return to the previous page, saving the feed being left."""
        if not self.history:
            self.open_main_page()
            return

        feed = self.get_feed(self.history[-1].feed_path)
        if not feed.is_folder:
            feed.save()

        self.history.pop()
        if not self.history:
            self.open_main_page()
            return

        item = self.history[-1]
        if item.feed_path and item.entry_index >= 0:
            self.open_entry(item.feed_path, item.entry_index, item.page_index)
        else:
            self.open_feed(item.feed_path, item.page_index, item.is_last_entries_display)
        self.history.pop()

    def next_entry(self) -> bool:
        """Open the entry after the current one; False when there is none."""
        if not self.history:
            return False
        item = self.history[-1]
        if item.is_last_entries_display or item.entry_index < 0:
            return False
        feed = self.get_feed(item.feed_path)
        if item.entry_index + 1 >= len(feed.entries):
            return False
        self.history.pop()
        self.open_entry(item.feed_path, item.entry_index + 1, 0)
        return True

    def previous_entry(self) -> bool:
        """Open the entry before the current one; False when there is none."""
        if not self.history:
            return False
        item = self.history[-1]
        if item.is_last_entries_display or item.entry_index <= 0:
            return False
        self.history.pop()
        self.open_entry(item.feed_path, item.entry_index - 1, 0)
        return True

    def open_external_link(self, feed_path: Sequence[int], entry_index: int) -> bool:
        """Open an entry's link in the browser."""
        feed = self.get_feed(feed_path)
        entry = feed.entries[entry_index]
        return launch_browser(entry.link, self.browser)

    def feed_lines(self) -> Iterator[str]:
        """Indented lines describing the feed tree with unread counts."""
        yield from _feed_lines(self.feed_list.root_feed, 0)


def _feed_lines(feed: NewsFeed, depth: int) -> Iterator[str]:
    for child in feed.news_feeds:
        if child.deleted:
            continue
        marker = "+" if child.is_folder else "-"
        yield f"{'  ' * depth}{marker} {child.title} ({child.nb_unread()})"
        if child.is_folder:
            yield from _feed_lines(child, depth + 1)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Command line entry point: list feeds, synchronise them or clear the cache."""
    parser = argparse.ArgumentParser(prog="inkfeed", description="Simple news feed reader.")
    parser.add_argument("--app-folder", type=Path, help="folder holding settings and feed list")
    parser.add_argument("--cache-dir", help="folder holding downloaded feeds")
    parser.add_argument(
        "command", nargs="?", default="list", choices=("list", "sync", "clear-cache")
    )
    args = parser.parse_args(argv)

    settings = AppSettings(app_folder=args.app_folder) if args.app_folder else AppSettings()
    app = App(settings, cache_dir=args.cache_dir)
    app.initialize()

    if args.command == "sync":
        app.sync_all()
        app.download_manager.run()
        app.save()
    elif args.command == "clear-cache":
        app.clear_cache()
    else:
        for line in app.feed_lines():
            print(line)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())