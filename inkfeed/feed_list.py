"""The subscription list, read from and written back to an OPML file."""

from __future__ import annotations

import logging
import os
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Optional

from inkfeed.download import Download
from inkfeed.news_feed import DEFAULT_CACHE_DIR, DEFAULT_MAX_ENTRIES, NewsFeed

logger = logging.getLogger(__name__)


def _int_attribute(element: ET.Element, name: str, default: int) -> int:
    value = element.get(name)
    if value is None:
        return default
    try:
        return int(value.strip())
    except ValueError:
        pass
    if value == "true":
        return 1
    if value == "false":
        return 0
    return default


class FeedList:
    """A tree of feeds and folders loaded from an OPML document."""

    def __init__(
        self,
        cache_dir: str = DEFAULT_CACHE_DIR,
        max_entries: int = DEFAULT_MAX_ENTRIES,
    ) -> None:
        self.cache_dir = cache_dir
        self.max_entries = max_entries
        self.root_feed = NewsFeed(
            title="root", is_folder=True, cache_dir=cache_dir, max_entries=max_entries
        )
        self.tree: Optional[ET.ElementTree] = None

    def load_document(self, path: str | os.PathLike[str]) -> None:
        """Replace the feed tree with the outlines of an OPML file; unreadable files give none."""
        self.root_feed.news_feeds.clear()
        self.tree = None

        logger.debug("Loading feed list %s", path)
        try:
            tree = ET.parse(path)
        except (OSError, ET.ParseError):
            return
        self.tree = tree

        self.root_feed.display_last_entry_first = False
        self.root_feed.unique_id = "root"
        root = tree.getroot()
        if root.tag != "opml":
            return
        body = root.find("body")
        if body is not None:
            self._parse_outlines(body, self.root_feed, 0)

    def _parse_outlines(self, parent_element: ET.Element, parent: NewsFeed, index: int) -> None:
        for sub_index, element in enumerate(parent_element.findall("outline")):
            url = element.get("xmlUrl", "")
            title = element.get("title", element.get("text", ""))
            unique_id = element.get("UniqueId", "") or url or f"{index}_{title}"
            feed = NewsFeed(
                title=title,
                url=url,
                unique_id=unique_id,
                is_folder=not url,
                deleted=_int_attribute(element, "bDeleted", 0) == 1,
                display_last_entry_first=_int_attribute(element, "bDisplayLastEntryFirst", 1) != 0,
                stored_nb_unread=_int_attribute(element, "NbUnRead", 0),
                stored_nb_new=_int_attribute(element, "NbNew", 0),
                last_entry_time=_int_attribute(element, "LastEntryTime", 0),
                xml_element=element,
                cache_dir=self.cache_dir,
                max_entries=self.max_entries,
            )
            parent.news_feeds.append(feed)
            if feed.is_folder:
                self._parse_outlines(element, feed, index * 1000 + sub_index)

    def save_document(self, path: str | os.PathLike[str]) -> None:
        """Save every feed and write the OPML document, with updated counters, to ``path``."""
        self.root_feed.save()
        if self.tree is None:
            return
        target = Path(path)
        logger.debug("Saving feed list %s", target)
        target.parent.mkdir(parents=True, exist_ok=True)
        self.tree.write(target, encoding="UTF-8", xml_declaration=True)

    def sync(self) -> list[Download]:
        """Downloads that refresh every feed in the list."""
        return self.root_feed.sync()