import xml.etree.ElementTree as ET

import pytest

from inkfeed.feed_list import FeedList

OPML = """<?xml version="1.0" encoding="UTF-8"?>
<opml version="1.0">
  <head><title>Subscriptions</title></head>
  <body>
    <outline text="Tech" title="Tech">
      <outline text="Example" title="Example Feed" xmlUrl="https://example.com/feed.xml" NbUnRead="4" NbNew="2" LastEntryTime="1700000000"/>
      <outline text="Other" xmlUrl="https://example.com/other.xml" UniqueId="custom-id" bDisplayLastEntryFirst="0"/>
    </outline>
    <outline title="Reddit" xmlUrl="https://www.reddit.com/r/python/.rss"/>
    <outline title="Empty folder"/>
  </body>
</opml>
"""


@pytest.fixture
def opml_path(tmp_path):
    path = tmp_path / "subscriptions.opml"
    path.write_text(OPML, encoding="utf-8")
    return path


@pytest.fixture
def feed_list(tmp_path, opml_path):
    feeds = FeedList(cache_dir=str(tmp_path / "cache"))
    feeds.load_document(opml_path)
    return feeds


def test_structure(feed_list):
    root = feed_list.root_feed
    assert [feed.title for feed in root.news_feeds] == ["Tech", "Reddit", "Empty folder"]
    tech = root.news_feeds[0]
    assert tech.is_folder
    assert [feed.url for feed in tech.news_feeds] == [
        "https://example.com/feed.xml",
        "https://example.com/other.xml",
    ]
    assert not tech.news_feeds[0].is_folder
    assert root.news_feeds[2].is_folder


def test_root_settings(feed_list):
    assert feed_list.root_feed.unique_id == "root"
    assert feed_list.root_feed.display_last_entry_first is False


def test_title_falls_back_to_text(feed_list):
    other = feed_list.root_feed.news_feeds[0].news_feeds[1]
    assert other.title == "Other"


def test_unique_ids(feed_list):
    root = feed_list.root_feed
    tech = root.news_feeds[0]
    assert tech.news_feeds[0].unique_id == "https://example.com/feed.xml"
    assert tech.news_feeds[1].unique_id == "custom-id"
    assert tech.unique_id == "0_Tech"


def test_counters_and_flags(feed_list):
    tech = feed_list.root_feed.news_feeds[0]
    example, other = tech.news_feeds
    assert example.stored_nb_unread == 4
    assert example.stored_nb_new == 2
    assert example.last_entry_time == 1700000000
    assert example.display_last_entry_first is True
    assert other.display_last_entry_first is False
    assert other.deleted is False


def test_missing_file_gives_empty_list(tmp_path):
    feeds = FeedList(cache_dir=str(tmp_path / "cache"))
    feeds.load_document(tmp_path / "missing.opml")
    assert feeds.root_feed.news_feeds == []
    assert feeds.root_feed.is_folder


def test_reload_clears_previous_feeds(feed_list, tmp_path):
    feed_list.load_document(tmp_path / "missing.opml")
    assert feed_list.root_feed.news_feeds == []


def test_sync_creates_one_download_per_feed(feed_list, tmp_path):
    downloads = feed_list.sync()
    assert len(downloads) == 3
    assert downloads[0].url == "https://example.com/feed.xml"
    assert downloads[2].url == "https://www.reddit.com/r/python/new/.rss?limit=50"
    assert all(d.out_file_path.startswith(str(tmp_path / "cache")) for d in downloads)
    assert all(d.out_file_path.endswith("_dl.xml") for d in downloads)


def test_save_round_trip(feed_list, tmp_path):
    example = feed_list.root_feed.news_feeds[0].news_feeds[0]
    example.mark_as_deleted()
    saved = tmp_path / "saved" / "savedOPML.xml"
    feed_list.save_document(saved)

    tree = ET.parse(saved)
    assert tree.getroot().tag == "opml"

    reloaded = FeedList(cache_dir=str(tmp_path / "cache"))
    reloaded.load_document(saved)
    tech = reloaded.root_feed.news_feeds[0]
    assert tech.news_feeds[0].deleted is True
    assert tech.news_feeds[0].stored_nb_unread == 4
    assert tech.news_feeds[1].unique_id == "custom-id"
    assert tech.news_feeds[1].display_last_entry_first is False
    assert [f.title for f in reloaded.root_feed.news_feeds] == ["Tech", "Reddit", "Empty folder"]


def test_save_without_document_writes_nothing(tmp_path):
    feeds = FeedList(cache_dir=str(tmp_path / "cache"))
    target = tmp_path / "out.xml"
    feeds.save_document(target)
    assert not target.exists()