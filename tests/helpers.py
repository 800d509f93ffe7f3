"""Shared test doubles and builders."""

import json
import time

from src.models.datatypes import NewsItem


def make_item(title, summary="Market watchers tracked the session closely today.",
              timestamp="2024-06-10T09:00:00+00:00", source="Test", url=None):
    return NewsItem(
        title=title,
        url=url or "https://example.com/" + title.lower().replace(" ", "-")[:40],
        summary=summary,
        timestamp=timestamp,
        source=source,
    )


class FakeResponse:
    """Stand-in for ``requests.Response``, streamable in fixed-size chunks."""

    def __init__(self, status_code=200, content=b"", json_data=None, text="", chunk_delay=0.0):
        if json_data is not None and not content:
            content = json.dumps(json_data).encode("utf-8")
        if text and not content:
            content = text.encode("utf-8")
        self.status_code = status_code
        self.content = content
        self.text = content.decode("utf-8", "ignore")
        self.chunk_delay = chunk_delay
        self.closed = False

    def iter_content(self, chunk_size=1):
        for start in range(0, len(self.content), chunk_size):
            if self.chunk_delay:
                time.sleep(self.chunk_delay)
            yield self.content[start:start + chunk_size]

    def close(self):
        self.closed = True

    def json(self):
        return json.loads(self.content)


class FakeLLM:
    """Stand-in for OpenAIChatClient: returns a canned reply or raises."""

    def __init__(self, reply=None, error=None):
        self.reply = reply
        self.error = error
        self.calls = []

    def complete(self, system, prompt):
        self.calls.append((system, prompt))
        if self.error is not None:
            raise self.error
        return self.reply


class StaticNewsProvider:
    def __init__(self, name, items=None, error=None):
        self.name = name
        self.items = items or []
        self.error = error

    def fetch_news(self):
        if self.error is not None:
            raise self.error
        return list(self.items)
