"""Mail sources for the swipe scanner.

MailSource is the narrow interface the scanner consumes: search for message
ids, then fetch one message at a time. GmailMailSource implements it over
the Gmail REST API with an already-authorized token file. Obtaining or
refreshing that token happens elsewhere; an expired token is a
ConfigurationError here.

Transport retries for single-message fetches live in this layer (tenacity),
never in the scanner.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any, Protocol

import httplib2
from google.auth.exceptions import GoogleAuthError
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from tenacity import Retrying, retry_if_exception, stop_after_attempt, wait_exponential

from swipeq.config import FETCH_MAX_RETRIES, GMAIL_SCOPES, GMAIL_TOKEN_PATH
from swipeq.gmail.mime import message_from_gmail
from swipeq.observability.logging import get_logger
from swipeq.observability.telemetry import counter, log_event, time_block
from swipeq.swipes.errors import ConfigurationError, TransientFetchError
from swipeq.swipes.types import FetchedMessage

logger = get_logger(__name__)

# Gmail caps users.messages.list pages at 500 ids
_LIST_PAGE_MAX = 500
_RETRYABLE_STATUS = {429, 500, 502, 503, 504}


class MailSource(Protocol):
    """What the scanner needs from a mailbox."""

    def search(self, query: str, limit: int) -> list[str | None]:
        """Message ids matching ``query``, at most ``limit``. Entries may lack an id."""
        ...

    def fetch(self, message_id: str) -> FetchedMessage:
        """Full content of one message. Raises TransientFetchError on failure."""
        ...


def _http_status(exc: HttpError) -> int | None:
    status = getattr(exc, "status_code", None)
    if status is None and getattr(exc, "resp", None) is not None:
        status = getattr(exc.resp, "status", None)
    try:
        return int(status) if status is not None else None
    except (TypeError, ValueError):
        return None


def _is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, HttpError):
        return _http_status(exc) in _RETRYABLE_STATUS
    return isinstance(exc, (TimeoutError, ConnectionError, httplib2.HttpLib2Error))


def load_credentials(token_path: Path = GMAIL_TOKEN_PATH) -> Credentials:
    """
    Load an already-authorized user token.

    Raises:
        ConfigurationError: If the file is missing, unreadable, or the token is
            no longer valid (refresh is not handled here).
    """
    if not token_path.exists():
        raise ConfigurationError(f"Gmail token file not found: {token_path.name}")

    try:
        credentials = Credentials.from_authorized_user_file(str(token_path), GMAIL_SCOPES)
    except (ValueError, OSError) as exc:
        raise ConfigurationError(f"Gmail token file is invalid: {exc}") from exc

    if not credentials.valid:
        raise ConfigurationError("Gmail credentials are expired or invalid; re-authorize the mailbox")
    return credentials


class GmailMailSource:
    """
    MailSource backed by the Gmail API (read-only scope).

    googleapiclient service objects share an httplib2 connection that is not
    thread-safe, so each scan worker thread builds its own service from the
    shared credentials.
    """

    def __init__(
        self,
        credentials: Credentials | None = None,
        user_id: str = "me",
        service_factory: Callable[[], Any] | None = None,
        max_retries: int = FETCH_MAX_RETRIES,
    ):
        """
        Args:
            credentials: Authorized credentials (ignored when service_factory is given)
            user_id: Gmail userId path parameter
            service_factory: Builds a Gmail service; injected in tests
            max_retries: Attempts per message fetch before giving up
        """
        if credentials is None and service_factory is None:
            raise ConfigurationError("GmailMailSource needs credentials or a service factory")

        self.user_id = user_id
        self.max_retries = max(1, max_retries)
        self._credentials = credentials
        self._service_factory = service_factory or self._build_service
        self._local = threading.local()

    @classmethod
    def from_token_file(cls, token_path: Path = GMAIL_TOKEN_PATH) -> GmailMailSource:
        return cls(credentials=load_credentials(token_path))

    def _build_service(self) -> Any:
        try:
            return build("gmail", "v1", credentials=self._credentials, cache_discovery=False)
        except (GoogleAuthError, HttpError, OSError) as exc:
            raise ConfigurationError(f"Failed to build Gmail service: {exc}") from exc

    @property
    def service(self) -> Any:
        """Per-thread Gmail API service."""
        service = getattr(self._local, "service", None)
        if service is None:
            service = self._service_factory()
            self._local.service = service
        return service

    def search(self, query: str, limit: int) -> list[str | None]:
        """
        List message ids for ``query``, following pages until ``limit``.

        Raises:
            ConfigurationError: Any list failure. Without a listing there is
                nothing to scan, so this is fatal for the caller.
        """
        ids: list[str | None] = []
        page_token: str | None = None

        with time_block("gmail.search.latency"):
            try:
                while len(ids) < limit:
                    request = (
                        self.service.users()
                        .messages()
                        .list(
                            userId=self.user_id,
                            q=query,
                            maxResults=min(limit - len(ids), _LIST_PAGE_MAX),
                            pageToken=page_token,
                        )
                    )
                    response = request.execute()
                    ids.extend(m.get("id") for m in response.get("messages") or [])
                    page_token = response.get("nextPageToken")
                    if not page_token:
                        break
            except HttpError as exc:
                status = _http_status(exc)
                log_event("gmail.search.error", status=status)
                raise ConfigurationError(f"Gmail search failed (HTTP {status})") from exc
            except GoogleAuthError as exc:
                log_event("gmail.search.error", error=type(exc).__name__)
                raise ConfigurationError(f"Gmail authorization failed: {exc}") from exc
            except (OSError, httplib2.HttpLib2Error) as exc:
                # Timeouts, refused connections, DNS failures
                log_event("gmail.search.error", error=type(exc).__name__)
                raise ConfigurationError(f"Gmail is unreachable: {type(exc).__name__}") from exc

        counter("gmail.messages.listed", len(ids))
        return ids[:limit]

    def fetch(self, message_id: str) -> FetchedMessage:
        """
        Fetch one message with ``format=full``, retrying transient errors.

        Raises:
            TransientFetchError: When the message can't be retrieved after retries.
        """
        retrying = Retrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=0.5, min=0.5, max=8),
            retry=retry_if_exception(_is_retryable),
            reraise=True,
        )
        try:
            with time_block("gmail.fetch.latency"):
                for attempt in retrying:
                    with attempt:
                        resource = (
                            self.service.users()
                            .messages()
                            .get(userId=self.user_id, id=message_id, format="full")
                            .execute()
                        )
        except HttpError as exc:
            counter("gmail.fetch.errors")
            raise TransientFetchError(message_id, f"HTTP {_http_status(exc)}") from exc
        except (OSError, httplib2.HttpLib2Error, GoogleAuthError) as exc:
            counter("gmail.fetch.errors")
            raise TransientFetchError(message_id, type(exc).__name__) from exc

        counter("gmail.fetch.count")
        return message_from_gmail(resource)
