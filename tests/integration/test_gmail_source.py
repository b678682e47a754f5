"""
Integration tests for GmailMailSource

The Gmail discovery client is replaced by a fake service object exposing
the same users().messages().list/get().execute() chain.
"""

import json
import threading

import httplib2
import pytest
from googleapiclient.errors import HttpError

from swipeq.gmail.source import GmailMailSource, load_credentials
from swipeq.observability.telemetry import get_counter
from swipeq.swipes.errors import ConfigurationError, TransientFetchError
from tests.fixtures.mailbox import FIXED_NOW, gmail_resource


def http_error(status: int) -> HttpError:
    resp = httplib2.Response({"status": status})
    content = json.dumps({"error": {"code": status, "message": "boom"}}).encode()
    return HttpError(resp, content)


class _Request:
    def __init__(self, outcome):
        self._outcome = outcome

    def execute(self):
        if isinstance(self._outcome, Exception):
            raise self._outcome
        return self._outcome


class FakeGmailService:
    """Scripted replies for messages.list and messages.get."""

    def __init__(self, pages=None, gets=None):
        self.pages = list(pages or [])
        self.gets = {k: list(v) for k, v in (gets or {}).items()}
        self.list_calls = []
        self.get_calls = []

    def users(self):
        return self

    def messages(self):
        return self

    def list(self, **kwargs):
        self.list_calls.append(kwargs)
        return _Request(self.pages.pop(0))

    def get(self, **kwargs):
        self.get_calls.append(kwargs)
        return _Request(self.gets[kwargs["id"]].pop(0))


def _source(service, **kwargs):
    return GmailMailSource(service_factory=lambda: service, **kwargs)


class TestSearch:
    def test_follows_pages(self):
        service = FakeGmailService(
            pages=[
                {"messages": [{"id": "a"}, {"id": "b"}], "nextPageToken": "t1"},
                {"messages": [{"id": "c"}]},
            ]
        )
        ids = _source(service).search("q", 10)

        assert ids == ["a", "b", "c"]
        assert service.list_calls[0]["q"] == "q"
        assert service.list_calls[0]["userId"] == "me"
        assert service.list_calls[0]["pageToken"] is None
        assert service.list_calls[1]["pageToken"] == "t1"
        assert service.list_calls[1]["maxResults"] == 8

    def test_stops_at_limit(self):
        service = FakeGmailService(
            pages=[{"messages": [{"id": "a"}, {"id": "b"}], "nextPageToken": "t1"}]
        )
        assert _source(service).search("q", 2) == ["a", "b"]
        assert len(service.list_calls) == 1
        assert service.list_calls[0]["maxResults"] == 2

    def test_page_size_capped(self):
        service = FakeGmailService(pages=[{"messages": []}])
        _source(service).search("q", 2000)
        assert service.list_calls[0]["maxResults"] == 500

    def test_empty_mailbox(self):
        service = FakeGmailService(pages=[{"resultSizeEstimate": 0}])
        assert _source(service).search("q", 10) == []

    def test_entry_without_id(self):
        service = FakeGmailService(pages=[{"messages": [{"threadId": "x"}, {"id": "a"}]}])
        assert _source(service).search("q", 10) == [None, "a"]

    def test_http_error_is_configuration_error(self):
        service = FakeGmailService(pages=[http_error(401)])
        with pytest.raises(ConfigurationError):
            _source(service).search("q", 10)

    @pytest.mark.parametrize(
        "error",
        [
            TimeoutError("timed out"),
            ConnectionRefusedError("refused"),
            httplib2.ServerNotFoundError("Unable to find the server at gmail.googleapis.com"),
        ],
    )
    def test_network_error_is_configuration_error(self, error):
        service = FakeGmailService(pages=[error])
        with pytest.raises(ConfigurationError) as exc_info:
            _source(service).search("q", 10)
        assert type(error).__name__ in str(exc_info.value)


class TestFetch:
    def test_returns_fetched_message(self):
        service = FakeGmailService(gets={"m1": [gmail_resource("m1", "Meals Used: 1")]})
        message = _source(service).fetch("m1")

        assert message.message_id == "m1"
        assert message.received_at == FIXED_NOW
        assert message.header("Subject") == "Order approved"
        assert service.get_calls[0] == {"userId": "me", "id": "m1", "format": "full"}
        assert get_counter("gmail.fetch.count") == 1

    def test_retries_server_error(self):
        service = FakeGmailService(
            gets={"m1": [http_error(503), gmail_resource("m1", "Meals Used: 1")]}
        )
        message = _source(service, max_retries=3).fetch("m1")
        assert message.message_id == "m1"
        assert len(service.get_calls) == 2

    def test_not_found_is_not_retried(self):
        service = FakeGmailService(gets={"m1": [http_error(404)]})
        with pytest.raises(TransientFetchError) as exc_info:
            _source(service, max_retries=3).fetch("m1")

        assert exc_info.value.message_id == "m1"
        assert exc_info.value.reason == "HTTP 404"
        assert len(service.get_calls) == 1

    def test_gives_up_after_max_retries(self):
        service = FakeGmailService(gets={"m1": [ConnectionError("reset"), ConnectionError("reset")]})
        with pytest.raises(TransientFetchError):
            _source(service, max_retries=2).fetch("m1")
        assert len(service.get_calls) == 2
        assert get_counter("gmail.fetch.errors") == 1


class TestServicePerThread:
    def test_each_thread_builds_its_own_service(self):
        built = []

        def factory():
            service = FakeGmailService()
            built.append(service)
            return service

        source = GmailMailSource(service_factory=factory)
        seen = []

        def worker():
            seen.append(source.service)
            seen.append(source.service)

        threads = [threading.Thread(target=worker) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(built) == 2
        assert len({id(s) for s in seen}) == 2


class TestCredentials:
    def test_requires_credentials_or_factory(self):
        with pytest.raises(ConfigurationError):
            GmailMailSource()

    def test_missing_token_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_credentials(tmp_path / "token.json")

    def test_unreadable_token_file(self, tmp_path):
        path = tmp_path / "token.json"
        path.write_text("not json")
        with pytest.raises(ConfigurationError):
            load_credentials(path)

    def test_token_missing_fields(self, tmp_path):
        path = tmp_path / "token.json"
        path.write_text(json.dumps({"token": "abc"}))
        with pytest.raises(ConfigurationError):
            load_credentials(path)
