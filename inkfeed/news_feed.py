"""News feeds, their entries, and the local cache files that hold them."""

from __future__ import annotations

import enum
import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from datetime import datetime
from email.utils import parsedate_to_datetime
from pathlib import Path
from typing import Optional

from inkfeed.download import Download, reader_mode_download_for
from inkfeed.html_parsing import clean_xml_value
from inkfeed.paths import convert_to_valid_filename, is_file_valid, replace_all

logger = logging.getLogger(__name__)

DEFAULT_CACHE_DIR = str(Path.home() / ".inkfeed" / "cache")
DEFAULT_MAX_ENTRIES = 200
SYNC_TIMEOUT = 5.0


class RssType(enum.Enum):
    """Syndication format of a feed file."""

    RSS = "rss"
    ATOM = "atom"


def parse_feed_time(text: str) -> Optional[datetime]:
    """Parse an RFC 822 or ISO 8601 date as found in feeds; None when it cannot be read."""
    text = text.strip()
    if not text:
        return None
    try:
        return parsedate_to_datetime(text)
    except (TypeError, ValueError, IndexError):
        pass
    iso = text[:-1] + "+00:00" if text.endswith(("Z", "z")) else text
    try:
        return datetime.fromisoformat(iso)
    except ValueError:
        return None


def _set_bool_attribute(element: ET.Element, name: str, value: bool) -> None:
    """Store ``value`` on ``element`` as the attribute ``name`` spelled true or false."""
    element.set(name, "true" if value else "false")


def _query_bool(value: Optional[str], current: bool) -> bool:
    if value is None:
        return current
    try:
        return int(value.strip()) != 0
    except ValueError:
        pass
    if value == "true":
        return True
    if value == "false":
        return False
    return current


def _child_text(element: ET.Element, tag: str) -> str:
    child = element.find(tag)
    if child is None:
        return ""
    return child.text or ""


def _remove_file(path: str) -> None:
    try:
        Path(path).unlink(missing_ok=True)
    except OSError as error:
        logger.warning("Could not remove %s: %s", path, error)


def _parse_xml(path: str) -> Optional[ET.Element]:
    """Parse ``path``, dropping the default namespace from element tags."""
    default_namespaces: set[str] = set()
    root: Optional[ET.Element] = None
    try:
        with open(path, "rb") as handle:
            for event, item in ET.iterparse(handle, events=("start-ns", "start")):
                if event == "start-ns":
                    prefix, uri = item
                    if prefix == "":
                        default_namespaces.add(uri)
                elif root is None:
                    root = item
    except (OSError, ET.ParseError):
        return None
    if root is None:
        return None
    if default_namespaces:
        for element in root.iter():
            if isinstance(element.tag, str) and element.tag.startswith("{"):
                uri, _, local = element.tag[1:].partition("}")
                if uri in default_namespaces:
                    element.tag = local
    return root


@dataclass(eq=False)
class NewsEntry:
    """One item of a feed."""

    title: str = ""
    text: str = ""
    time: str = ""
    link: str = ""
    unique_id: str = ""
    external_link: str = ""
    rss_type: RssType = RssType.RSS
    has_read: bool = False
    is_new: bool = True

    def parsed_time(self) -> int:
        """Entry time as seconds since the epoch, 0 when the date cannot be read."""
        moment = parse_feed_time(self.time)
        if moment is None:
            return 0
        try:
            return int(moment.timestamp())
        except (OverflowError, OSError, ValueError):
            return 0

    def to_element(self) -> ET.Element:
        """Serialise the entry as an RSS ``item`` or Atom ``entry`` element."""
        if self.rss_type is RssType.RSS:
            element = ET.Element("item")
            ET.SubElement(element, "description").text = self.text
            ET.SubElement(element, "pubDate").text = self.time
            ET.SubElement(element, "link").set("href", self.link)
        else:
            element = ET.Element("entry")
            ET.SubElement(element, "content").text = self.text
            ET.SubElement(element, "updated").text = self.time
            ET.SubElement(element, "link").text = self.link
        ET.SubElement(element, "title").text = self.title
        ET.SubElement(element, "UniqueId").text = self.unique_id
        _set_bool_attribute(element, "IsNew", self.is_new)
        _set_bool_attribute(element, "HasRead", self.has_read)
        return element

    def parse_element(self, element: ET.Element) -> None:
        """Fill the entry from an RSS ``item`` or Atom ``entry`` element."""
        title = _child_text(element, "title")
        if self.rss_type is RssType.RSS:
            text = _child_text(element, "description")
            time = _child_text(element, "pubDate")
        else:
            text = _child_text(element, "content")
            time = _child_text(element, "updated")

        self.title = clean_xml_value(title)
        self.text = clean_xml_value(text)
        self.time = clean_xml_value(time)

        link_element = element.find("link")
        if link_element is not None:
            self.link = clean_xml_value(link_element.get("href", link_element.text or ""))

        local_id = clean_xml_value(_child_text(element, "UniqueId"))
        if local_id and not self.unique_id:
            self.unique_id = local_id
        else:
            self.unique_id = self.link or self.time or self.title

        self.is_new = _query_bool(element.get("IsNew"), self.is_new)
        self.has_read = _query_bool(element.get("HasRead"), self.has_read)

        self.external_link = ""
        submitted = self.text.find("submitted by")
        if "www.reddit.com" in self.link and 0 <= submitted <= 10:
            span = self.text.find("<span>")
            if span != -1:
                href = self.text.find("href=", span)
                if href != -1 and href + 5 < len(self.text):
                    delimiter = self.text[href + 5]
                    end = self.text.find(delimiter, href + 6)
                    if end != -1:
                        self.external_link = self.text[href + 6:end]

    def mark_as_read(self) -> None:
        """Flag the entry as read and no longer new."""
        self.is_new = False
        self.has_read = True


@dataclass(eq=False)
class NewsFeed:
    """A feed or a folder of feeds, backed by XML files in the cache folder."""

    title: str = ""
    url: str = ""
    unique_id: str = ""
    is_folder: bool = False
    deleted: bool = False
    is_loaded: bool = False
    display_last_entry_first: bool = True
    stored_nb_unread: int = 0
    stored_nb_new: int = 0
    last_entry_time: int = 0
    news_feeds: list[NewsFeed] = field(default_factory=list)
    entries: list[NewsEntry] = field(default_factory=list)
    rss_type: RssType = RssType.RSS
    xml_element: Optional[ET.Element] = field(default=None, repr=False)
    cache_dir: str = DEFAULT_CACHE_DIR
    max_entries: int = DEFAULT_MAX_ENTRIES

    def _reader_mode_path(self, url: str) -> str:
        return reader_mode_download_for(url, self.cache_dir, self.url, self.title).out_file_path

    def load(self, force: bool = False) -> None:
        """Load the cached entries, merging in a freshly downloaded file if present."""
        if self.is_folder:
            self.is_loaded = True
            last_child_time = 0
            for child in self.news_feeds:
                child.load(force)
                last_child_time = max(last_child_time, child.last_entry_time)
            if last_child_time != 0:
                self.last_entry_time = last_child_time
            self.stored_nb_unread = self.nb_unread()
            self.stored_nb_new = self.nb_new()
            return

        if self.is_loaded and not force:
            return
        self.is_loaded = True

        local_path = self.local_file_path("")
        downloaded_path = self.local_file_path("_dl")

        if not is_file_valid(local_path):
            self.load_file(downloaded_path)
            _remove_file(downloaded_path)
        else:
            self.load_file(local_path)
            if is_file_valid(downloaded_path):
                self._merge(downloaded_path)

        last_time = max((entry.parsed_time() for entry in self.entries), default=0)
        last_time = max(last_time, 0)
        if last_time != 0:
            self.last_entry_time = last_time

        self.stored_nb_unread = self.nb_unread()
        self.stored_nb_new = self.nb_new()
        self.save()

    def _merge(self, downloaded_path: str) -> None:
        downloaded = NewsFeed(url=self.url, cache_dir=self.cache_dir)
        downloaded.load_file(downloaded_path)

        known = {entry.unique_id for entry in self.entries}
        for entry in reversed(downloaded.entries):
            if entry.unique_id in known:
                continue
            self.entries.insert(0, entry)
            known.add(entry.unique_id)

        _remove_file(downloaded_path)

        if len(self.entries) > self.max_entries:
            for entry in self.entries[self.max_entries:]:
                _remove_file(self._reader_mode_path(entry.link))
                if entry.external_link:
                    _remove_file(self._reader_mode_path(entry.external_link))
            del self.entries[self.max_entries:]

    def load_file(self, path: str) -> None:
        """Replace the entries with those of an RSS or Atom file; unreadable files give none."""
        logger.debug("Loading %s", path)
        self.entries.clear()
        root = _parse_xml(path)
        if root is None:
            return
        if root.tag == "title":
            self.title = root.text or ""
        if root.tag == "feed":
            self.rss_type = RssType.ATOM
            self._read_items(root.findall("entry"), RssType.ATOM)
        elif root.tag == "rss":
            self.rss_type = RssType.RSS
            channel = root.find("channel")
            items = channel.findall("item") if channel is not None else []
            self._read_items(items, RssType.RSS)

    def _read_items(self, elements: list[ET.Element], rss_type: RssType) -> None:
        for element in elements:
            entry = NewsEntry(rss_type=rss_type)
            entry.parse_element(element)
            if "http://" not in entry.link and "https://" not in entry.link:
                entry.link = self.url + "/" + entry.link
            self.entries.append(entry)

    def save(self) -> None:
        """Store counters on the outline element and write loaded entries to the cache."""
        if self.xml_element is not None:
            self.xml_element.set("NbUnRead", str(self.nb_unread()))
            self.xml_element.set("NbNew", str(self.nb_new()))
            self.xml_element.set("LastEntryTime", str(int(self.last_entry_time)))
            _set_bool_attribute(
                self.xml_element, "bDisplayLastEntryFirst", self.display_last_entry_first
            )
            self.xml_element.set("UniqueId", self.unique_id)
            if self.deleted:
                _set_bool_attribute(self.xml_element, "bDeleted", self.deleted)

        if self.deleted:
            return

        if self.is_folder:
            for child in self.news_feeds:
                child.save()
            return

        if not self.entries or not self.is_loaded:
            return

        if self.rss_type is RssType.RSS:
            root = ET.Element("rss")
            parent = ET.SubElement(root, "channel")
        else:
            root = ET.Element("feed")
            parent = root
        for entry in self.entries:
            parent.append(entry.to_element())

        path = Path(self.local_file_path(""))
        logger.debug("Saving %s", path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            ET.ElementTree(root).write(path, encoding="UTF-8", xml_declaration=True)
        except OSError as error:
            logger.error("Could not save %s: %s", path, error)

    def sync(self) -> list[Download]:
        """Downloads that refresh this feed, or every feed below a folder."""
        if self.is_folder:
            return [download for child in self.news_feeds for download in child.sync()]
        fixed_url = self.url
        if "reddit.com/r/" in fixed_url:
            fixed_url = replace_all(fixed_url, "/.rss", "/new/.rss?limit=50")
        return [Download(fixed_url, self.local_file_path("_dl"), timeout=SYNC_TIMEOUT)]

    def _needs_full_article(self, entry: NewsEntry) -> bool:
        text_length = len(entry.text)
        if "www.reddit.com" in entry.link:
            return True
        if "[...]" in entry.text:
            return True
        if "twitter.com" not in entry.link and text_length < 512:
            return True
        read_more = entry.text.rfind(">Read More")
        if read_more == -1:
            return False
        threshold = text_length - int(max(text_length * 0.75, 20.0))
        return threshold >= 0 and read_more > threshold

    def additional_sync(self) -> list[Download]:
        """Downloads of full article pages not yet in the cache."""
        if self.is_folder:
            return [download for child in self.news_feeds for download in child.additional_sync()]
        downloads = []
        for entry in self.entries:
            if self._needs_full_article(entry):
                download = reader_mode_download_for(entry.link, self.cache_dir, self.url, self.title)
                if not is_file_valid(download.out_file_path):
                    downloads.append(download)
            if entry.external_link:
                download = reader_mode_download_for(
                    entry.external_link, self.cache_dir, self.url, self.title
                )
                if not is_file_valid(download.out_file_path):
                    downloads.append(download)
        return downloads

    def local_file_path(self, suffix: str = "") -> str:
        """Path of the cache file for this feed, with ``suffix`` before the extension."""
        result = replace_all(self.url, "http://", "")
        result = replace_all(result, "https://", "")
        slash = result.find("/")
        if slash != -1:
            host_name = result[:slash]
            result = host_name + "/" + convert_to_valid_filename(result[slash:])
        else:
            result = convert_to_valid_filename(result)
        return f"{self.cache_dir}/{result}{suffix}.xml"

    def mark_as_read(self) -> None:
        """Mark every entry, here and below, as read."""
        self.stored_nb_unread = 0
        self.stored_nb_new = 0
        for child in self.news_feeds:
            child.mark_as_read()
        for entry in self.entries:
            entry.mark_as_read()

    def mark_as_deleted(self) -> None:
        """Flag the feed as deleted; it is then no longer saved."""
        self.deleted = True

    def nb_new(self) -> int:
        """Number of new entries; the stored count until the feed is loaded."""
        if not self.is_loaded:
            return self.stored_nb_new
        if self.is_folder:
            return sum(child.nb_new() for child in self.news_feeds)
        return sum(1 for entry in self.entries if entry.is_new)

    def nb_unread(self) -> int:
        """Number of unread entries; the stored count when there is nothing to count."""
        if self.is_folder:
            if not self.news_feeds:
                return self.stored_nb_unread
            return sum(child.nb_unread() for child in self.news_feeds)
        if not self.entries:
            return self.stored_nb_unread
        return sum(1 for entry in self.entries if not entry.has_read)

    def children_recursive(self) -> list[NewsFeed]:
        """All leaf feeds at or below this one, in order."""
        if self.is_folder:
            return [leaf for child in self.news_feeds for leaf in child.children_recursive()]
        return [self]