"""Persistent application settings stored as a small XML file."""

from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from pathlib import Path

_LEADING_INT_RE = re.compile(r"\s*([+-]?\d+)")


def _atoi(text: str | None) -> int:
    if not text:
        return 0
    match = _LEADING_INT_RE.match(text)
    return int(match.group(1)) if match else 0


def _default_app_folder() -> Path:
    return Path.home() / ".inkfeed"


@dataclass
class AppSettings:
    """Reader settings; paths default to files inside ``app_folder``."""

    app_folder: Path = field(default_factory=_default_app_folder)
    flash_dir: Path = field(default_factory=Path.home)
    max_entry_to_keep_by_feed: int = 200
    synchronize_at_start: bool = False
    path_to_opml: str = ""
    path_to_last_imported_opml: str = ""
    path_to_saved_opml: str = ""
    config_file_path: str = ""

    def __post_init__(self) -> None:
        self.app_folder = Path(self.app_folder)
        self.flash_dir = Path(self.flash_dir)
        if not self.path_to_opml:
            self.path_to_opml = str(self.flash_dir / "Dropbox PocketBook" / "subscriptions.opml")
        if not self.path_to_last_imported_opml:
            self.path_to_last_imported_opml = str(self.app_folder / "lastImportedOPML.xml")
        if not self.path_to_saved_opml:
            self.path_to_saved_opml = str(self.app_folder / "savedOPML.xml")
        if not self.config_file_path:
            self.config_file_path = str(self.app_folder / "config.xml")

    def load_config(self) -> None:
        """Read the config file; a missing or unreadable file leaves the settings unchanged."""
        path = Path(self.config_file_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        try:
            root = ET.parse(path).getroot()
        except (OSError, ET.ParseError):
            return
        opml = root.find("PathToOPML")
        if opml is not None:
            self.path_to_opml = opml.text or ""
        max_entries = root.find("MaxEntryToKeepByFeed")
        if max_entries is not None:
            self.max_entry_to_keep_by_feed = _atoi(max_entries.text)

    def save_config(self) -> None:
        """Write the config file, creating its folder when needed."""
        path = Path(self.config_file_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        root = ET.Element("config")
        ET.SubElement(root, "PathToOPML").text = self.path_to_opml
        ET.SubElement(root, "MaxEntryToKeepByFeed").text = str(self.max_entry_to_keep_by_feed)
        tree = ET.ElementTree(root)
        ET.indent(tree, space="    ")
        tree.write(path, encoding="utf-8")