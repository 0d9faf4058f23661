"""Ordering and labelling logic behind the feed list, feed and entry pages."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Optional, Sequence

from inkfeed.news_feed import NewsEntry, NewsFeed
from inkfeed.paths import replace_all

DEFAULT_LAST_ENTRIES_LIMIT = 500


@dataclass(eq=False)
class EntryInfo:
    """An entry placed in the merged, newest-first list of a folder."""

    entry: NewsEntry
    feed_path: list[int]
    entry_index: int
    tag: str
    time: int
    starts_new_day: bool = field(default=False)


def sorted_child_indices(feed: NewsFeed) -> list[int]:
    """Indices of the non-deleted children, newest first when the feed asks for it."""
    indices = [index for index, child in enumerate(feed.news_feeds) if not child.deleted]
    if feed.display_last_entry_first:
        indices.sort(key=lambda index: (feed.news_feeds[index].last_entry_time, index), reverse=True)
    return indices


def _collect(feed: NewsFeed, feed_path: list[int], out: list[EntryInfo]) -> None:
    for index, child in enumerate(feed.news_feeds):
        child_path = [*feed_path, index]
        if child.is_folder:
            _collect(child, child_path, out)
            continue
        tag = child.title[:3]
        for entry_index, entry in enumerate(child.entries):
            out.append(EntryInfo(entry, child_path, entry_index, tag, entry.parsed_time()))


def last_entries(
    feed: NewsFeed,
    feed_path: Sequence[int] = (),
    last_read: Optional[tuple[Sequence[int], int]] = None,
    limit: int = DEFAULT_LAST_ENTRIES_LIMIT,
) -> list[EntryInfo]:
    """Unread entries below ``feed``, newest first, among the ``limit`` most recent.

    Read entries are left out, except the one named by ``last_read`` as
    ``(feed_path, entry_index)``. ``starts_new_day`` marks an entry whose local
    day differs from the one shown before it.
    """
    if not feed.is_loaded:
        feed.load()

    collected: list[EntryInfo] = []
    _collect(feed, list(feed_path), collected)
    ordered = sorted(
        enumerate(collected), key=lambda pair: (pair[1].time, pair[0]), reverse=True
    )

    last_read_key = None
    if last_read is not None:
        last_read_key = (list(last_read[0]), last_read[1])

    results: list[EntryInfo] = []
    last_day = 0
    for _, info in ordered[: max(limit, 0)]:
        if info.entry.has_read and (info.feed_path, info.entry_index) != last_read_key:
            continue
        day = time.localtime(info.time).tm_yday - 1
        info.starts_new_day = day != last_day
        results.append(info)
        last_day = day
    return results


def comment_user_name(comment_title: str, entry_title: str) -> str:
    """User name of a discussion comment, taken from its title."""
    name = replace_all(comment_title, entry_title, "")
    name = replace_all(name, " on ", "")
    return replace_all(name, "/u/", "")


def entry_position_label(entry_index: int, total: int) -> str:
    """Label showing the entry's position among the feed's entries."""
    return f"({entry_index + 1}/{total})"