import textwrap

import pytest

from blog_reader.models import FeedEntry, Source, SourceKind


def rss_document(*items: str) -> bytes:
    body = "\n".join(items)
    return textwrap.dedent(
        f"""\
        <?xml version="1.0" encoding="UTF-8"?>
        <rss version="2.0">
          <channel>
            <title>Example Blog</title>
            <link>https://blog.example.com/</link>
            <description>Posts</description>
            {body}
          </channel>
        </rss>
        """
    ).encode("utf-8")


def rss_item(guid: str, title: str = "Post", link: str = None, pub_date: str = None) -> str:
    link = link or f"https://blog.example.com/{guid}"
    parts = [
        f"<title>{title}</title>",
        f"<link>{link}</link>",
        f'<guid isPermaLink="false">{guid}</guid>',
    ]
    if pub_date:
        parts.append(f"<pubDate>{pub_date}</pubDate>")
    return "<item>" + "".join(parts) + "</item>"


def entry(entry_id: str, title: str = "Post") -> FeedEntry:
    return FeedEntry(
        id=entry_id, title=title, link=f"https://blog.example.com/{entry_id}"
    )


@pytest.fixture
def rss_payload() -> bytes:
    return rss_document(
        rss_item("c", "Third", pub_date="Wed, 03 Jan 2024 10:00:00 GMT"),
        rss_item("b", "Second", pub_date="Tue, 02 Jan 2024 10:00:00 GMT"),
        rss_item("a", "First"),
    )


@pytest.fixture
def atom_payload() -> bytes:
    return textwrap.dedent(
        """\
        <?xml version="1.0" encoding="utf-8"?>
        <feed xmlns="http://www.w3.org/2005/Atom">
          <title>Atom Blog</title>
          <id>urn:uuid:feed</id>
          <updated>2024-02-02T12:00:00Z</updated>
          <entry>
            <title>Atom Two</title>
            <id>urn:uuid:entry-2</id>
            <link href="https://atom.example.com/2"/>
            <updated>2024-02-02T12:00:00Z</updated>
            <summary type="html">&lt;p&gt;Hello &lt;strong&gt;world&lt;/strong&gt;.&lt;/p&gt;</summary>
          </entry>
          <entry>
            <title>Atom One</title>
            <id>urn:uuid:entry-1</id>
            <link href="https://atom.example.com/1"/>
            <updated>2024-02-01T12:00:00Z</updated>
          </entry>
        </feed>
        """
    ).encode("utf-8")


@pytest.fixture
def feed_source() -> Source:
    return Source("Example Blog", SourceKind.FEED, "https://blog.example.com/feed.xml")


@pytest.fixture
def manual_source() -> Source:
    return Source("Static Page", SourceKind.MANUAL, "https://page.example.com/")
