# inkfeed

inkfeed is a small RSS and Atom news feed reader. It keeps a tree of
feeds and folders in an OPML file, downloads the feeds into a local
cache so they can be read offline, and remembers for every entry
whether it is new or already read.

When a feed gives only a short summary of an article, inkfeed also
downloads the full page ("reader mode") into the cache. For Reddit
posts the download is the post's own `.rss` feed, so its comments are
cached as a feed of their own.

inkfeed uses only the Python standard library and needs Python 3.10 or
later.

## Installing

```
pip install .
```

## The command

```
inkfeed [--app-folder DIR] [--cache-dir DIR] [list | sync | clear-cache]
```

- `list` (the default) prints the feed tree, one line per feed or
  folder, with its number of unread entries. Folders are marked `+`,
  feeds `-`, and deleted feeds are left out.
- `sync` downloads every feed, then the full articles its entries need,
  waits until all downloads are done and writes the feed list back.
- `clear-cache` removes the cache folder.

`--app-folder` is the folder holding the settings and the feed list
(`~/.inkfeed` by default). `--cache-dir` is where downloaded feeds and
articles go (`cache` inside the app folder by default).

The feed list is read from `savedOPML.xml` in the app folder and saved
back there after `sync`. Put your OPML subscription file at that path to
start with; outlines with an `xmlUrl` are feeds, outlines without one are
folders.

## Settings

`inkfeed.settings.AppSettings` holds the paths and limits. Its
`load_config()` reads `config.xml` in the app folder, taking
`PathToOPML` and `MaxEntryToKeepByFeed` from it (200 entries per feed by
default); `save_config()` writes those two values back. A missing or
unreadable config file leaves the defaults in place.

## Using it as a library

- `inkfeed.feed_list.FeedList`: `load_document(path)` builds the feed tree
  from an OPML file, `save_document(path)` saves every feed and writes
  the OPML file with updated counters, `sync()` returns the downloads
  that refresh every feed.
- `inkfeed.news_feed.NewsFeed`: a feed or folder. `load_file(path)` reads
  an RSS or Atom file, `load(force)` loads the cached file and merges a
  freshly downloaded one into it (keeping at most `max_entries`),
  `save()` writes the cache file, `sync()` and `additional_sync()` return
  the downloads for the feed and for its full articles, `nb_unread()`
  and `nb_new()` count entries, `mark_as_read()` and `mark_as_deleted()`
  flag it, `children_recursive()` lists the leaf feeds below it.
- `inkfeed.news_feed.NewsEntry`: one entry, read with `parse_element()`,
  written with `to_element()`; `parsed_time()` gives its date in seconds
  since the epoch. `parse_feed_time(text)` reads RFC 822 and ISO 8601
  dates.
- `inkfeed.download`: `Download` fetches one URL into a file on a
  background thread; `DownloadGroup` runs a callback once all its
  downloads are done; `DownloadManager` runs at most 16 downloads at once
  and 5 per host, drops queued duplicates of the same target file, and
  retries a failed download once. `check()` advances the queue one step
  and `run(interval)` repeats it until the queue is empty.
  `reader_mode_download_for()` builds the full-article download for a URL.
- `inkfeed.views`: `sorted_child_indices(feed)` orders a folder's feeds
  newest first, `last_entries(feed, ...)` merges the unread entries of a
  folder newest first, `comment_user_name()` and `entry_position_label()`
  build labels for an entry page.
- `inkfeed.app.App`: the reader's state, with page history
  (`open_main_page`, `open_feed`, `open_entry`, `go_back`, `next_entry`,
  `previous_entry`), synchronisation (`sync_all`, `sync_current`),
  `open_external_link` (through `launch_browser`), `save` and
  `clear_cache`.

A few helpers are useful on their own:

```python
from inkfeed.paths import get_host_name, convert_to_valid_filename

get_host_name("https://example.com/news/feed.xml")   # "example.com"
convert_to_valid_filename("a/b:c?d")                  # "abcd"
```

```python
from inkfeed.html_parsing import clean_xml_value

clean_xml_value("Fish &amp; chips\n")                 # "Fish & chips"
```

## What it does not do

inkfeed has no reading screen: the command lists, synchronises and
clears, and page navigation exists only as the `App` methods above. It
does not import or compare the file named by `PathToOPML`; the command
always works from `savedOPML.xml`. The `synchronize_at_start` setting is
not read from the config file.

## Running the tests

```
pip install .[test]
pytest
```