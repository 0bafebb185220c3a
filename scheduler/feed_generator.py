"""
RSS feed generation from the notification history.

This module provides:
- RSS 2.0 rendering of notification items
- Atomic publication of the rendered feed file
"""

from datetime import datetime, timezone
from email.utils import format_datetime
from pathlib import Path
from typing import Callable, Optional, Sequence, Union
from xml.etree import ElementTree as ET

import structlog

from scheduler.history import utc_now
from scheduler.models import FeedConfig, NotificationItem
from scheduler.store import atomic_write_text

logger = structlog.get_logger(__name__)

ATOM_NS = "http://www.w3.org/2005/Atom"
RSS_DOCS_URL = "https://validator.w3.org/feed/docs/rss2.html"

ET.register_namespace("atom", ATOM_NS)


def rfc822(value: datetime) -> str:
    """Format a datetime the way RSS expects (RFC 822, GMT)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return format_datetime(value.astimezone(timezone.utc), usegmt=True)


class FeedGenerator:
    """Generator for the RSS document served to feed readers."""

    def __init__(
        self,
        feed_config: FeedConfig,
        output_path: Union[str, Path],
        clock: Callable[[], datetime] = utc_now
    ):
        """
        Initialize feed generator.

        Args:
            feed_config: Channel settings
            output_path: Where the rendered feed is published
            clock: Source of the lastBuildDate timestamp
        """
        self.config = feed_config
        self.output_path = Path(output_path)
        self.clock = clock
        self.logger = logger.bind(component="feed_generator")

    def render(self, items: Sequence[NotificationItem], updated: Optional[datetime] = None) -> str:
        """
        Render items as an RSS 2.0 document.

        Args:
            items: Notification items, already in presentation order
            updated: Build timestamp (defaults to the clock)

        Returns:
            XML document as text
        """
        updated = updated or self.clock()

        rss = ET.Element("rss", {"version": "2.0"})
        channel = ET.SubElement(rss, "channel")
        self._text(channel, "title", self.config.title)
        self._text(channel, "link", self.config.feed_url)
        self._text(channel, "description", self.config.description)
        self._text(channel, "lastBuildDate", rfc822(updated))
        self._text(channel, "docs", RSS_DOCS_URL)
        self._text(channel, "generator", self.config.generator)
        self._text(channel, "language", self.config.language)

        image = ET.SubElement(channel, "image")
        self._text(image, "title", self.config.title)
        self._text(image, "url", self.config.favicon_url)
        self._text(image, "link", self.config.feed_url)

        ET.SubElement(channel, f"{{{ATOM_NS}}}link", {
            "href": self.config.feed_url,
            "rel": "self",
            "type": "application/rss+xml",
        })

        for item in items:
            self._add_item(channel, item)

        body = ET.tostring(rss, encoding="unicode")
        return '<?xml version="1.0" encoding="utf-8"?>\n' + body

    def _add_item(self, channel: ET.Element, item: NotificationItem) -> None:
        element = ET.SubElement(channel, "item")
        self._text(element, "title", item.title)
        if item.link:
            self._text(element, "link", item.link)
        guid = self._text(element, "guid", item.id)
        guid.set("isPermaLink", "false")
        self._text(element, "pubDate", rfc822(item.date))
        if item.description:
            self._text(element, "description", item.description)

    @staticmethod
    def _text(parent: ET.Element, tag: str, value: str) -> ET.Element:
        element = ET.SubElement(parent, tag)
        element.text = value
        return element

    def write(self, items: Sequence[NotificationItem]) -> bool:
        """
        Render and publish the feed file.

        Returns:
            True if the file was replaced, False on failure
        """
        try:
            document = self.render(items)
            atomic_write_text(self.output_path, document)
            self.logger.info("RSS feed updated", items=len(items), path=str(self.output_path))
            return True
        except OSError as e:
            self.logger.error("Failed to write RSS feed", path=str(self.output_path), error=str(e))
            return False
