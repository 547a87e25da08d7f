"""Shared fixtures for ingestion tests."""

import pytest

RSS_XML = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0" xmlns:media="http://search.yahoo.com/mrss/">
  <channel>
    <title>Pattaya Mail</title>
    <link>https://www.pattayamail.com</link>
    <item>
      <title>Breaking: Flooding closes Beach Road</title>
      <link>https://www.pattayamail.com/news/flooding-beach-road#comments</link>
      <description><![CDATA[<p>Heavy rain <b>flooded</b> the road.</p><img src="/images/flood.jpg" alt="Flooded road"/>]]></description>
      <pubDate>Sun, 01 Jun 2025 08:30:00 +0700</pubDate>
      <category>Local News</category>
    </item>
    <item>
      <title>Night market reopens</title>
      <link>https://www.pattayamail.com/news/night-market</link>
      <description>Stalls are back on Thepprasit Road.</description>
      <media:thumbnail url="https://cdn.pattayamail.com/market.jpg"/>
    </item>
    <item>
      <title></title>
      <link>https://www.pattayamail.com/news/untitled</link>
    </item>
  </channel>
</rss>
"""


@pytest.fixture
def rss_xml() -> str:
    return RSS_XML


@pytest.fixture
def search_payload() -> dict:
    """A YouTube search API response with two results."""
    return {
        "items": [
            {
                "id": {"kind": "youtube#video", "videoId": "abc123"},
                "snippet": {
                    "title": "Wat Arun at Sunrise &amp; Sunset",
                    "description": "A walk around the temple.",
                    "channelId": "UCtemple",
                    "channelTitle": "Temple Walks",
                    "publishedAt": "2025-05-30T10:00:00Z",
                    "thumbnails": {
                        "default": {"url": "https://i.ytimg.com/vi/abc123/default.jpg"},
                        "medium": {"url": "https://i.ytimg.com/vi/abc123/mqdefault.jpg"},
                    },
                },
            },
            {
                "id": {"kind": "youtube#video", "videoId": "def456"},
                "snippet": {"title": "Floating markets", "channelId": "UCmarkets"},
            },
        ]
    }
