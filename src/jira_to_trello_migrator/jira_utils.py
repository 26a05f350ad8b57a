"""Jira Cloud REST API v3 access: the RecordSource used for real migrations."""

from __future__ import annotations

import logging
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Final

import requests

from . import utils
from .exceptions import DecodeError, LocalIOError, TransportError
from .models import (
    AttachmentDescriptor,
    Comment,
    ContentBlock,
    EpicRecord,
    InlineSpan,
    Page,
    Priority,
    RichText,
    SourceRecord,
    User,
)

if TYPE_CHECKING:
    from collections.abc import Callable

# Module-wide logger
logger: logging.Logger = logging.getLogger(__name__)

_USER_ENV_VAR: Final[str] = "JIRA_USER"
_TOKEN_ENV_VAR: Final[str] = "JIRA_TOKEN"  # noqa: S105
_DEFAULT_USER_PASS_PATH: Final[str] = "jira/cli/user"
_DEFAULT_TOKEN_PASS_PATH: Final[str] = "jira/cli/token"  # noqa: S105

DEFAULT_DIAGNOSTICS_PATH: Final[Path] = Path("dodgy.json")
REQUEST_TIMEOUT: Final[int] = 30
EPIC_ISSUE_TYPE: Final[str] = "Epic"


@dataclass(frozen=True)
class EpicFieldIds:
    """Ids of the Jira custom fields holding epic data. These differ per Jira site."""

    link: str = "customfield_10014"
    name: str = "customfield_10011"
    colour: str = "customfield_10013"


def get_credentials(user_pass_path: str | None = None, token_pass_path: str | None = None) -> tuple[str, str]:
    """Get the Jira user and API token from pass, env vars JIRA_USER/JIRA_TOKEN or default pass paths."""
    user = utils.resolve_secret(user_pass_path, _USER_ENV_VAR, _DEFAULT_USER_PASS_PATH)
    token = utils.resolve_secret(token_pass_path, _TOKEN_ENV_VAR, _DEFAULT_TOKEN_PASS_PATH)
    if not user or not token:
        msg = f"Jira credentials not found: set {_USER_ENV_VAR} and {_TOKEN_ENV_VAR} or store them in pass"
        raise ValueError(msg)
    return user, token


def get_session(user: str, token: str) -> requests.Session:
    """Get a requests session authenticating against Jira with basic auth."""
    session = requests.Session()
    session.auth = (user, token)
    session.headers["Accept"] = "application/json"
    return session


def decode_rich_text(raw: dict[str, Any] | None) -> RichText:
    """Decode an Atlassian document. A missing document decodes to empty text."""
    if raw is None:
        return RichText()
    blocks = tuple(
        ContentBlock(
            type=block["type"],
            spans=tuple(InlineSpan(type=span["type"], text=span.get("text", "")) for span in block.get("content", [])),
        )
        for block in raw.get("content", [])
    )
    return RichText(blocks=blocks)


def decode_user(raw: dict[str, Any] | None) -> User:
    if raw is None:
        return User()
    return User(
        account_id=raw.get("accountId", ""),
        display_name=raw.get("displayName", ""),
        email=raw.get("emailAddress", ""),
    )


def decode_attachment(raw: dict[str, Any]) -> AttachmentDescriptor:
    return AttachmentDescriptor(
        id=str(raw["id"]),
        filename=raw["filename"],
        mime_type=raw.get("mimeType", ""),
        size=int(raw.get("size", 0)),
        content_url=raw.get("content", ""),
    )


def decode_record(raw: dict[str, Any], epic_fields: EpicFieldIds) -> SourceRecord:
    """Decode one issue from a search response. Epics decode to EpicRecord."""
    fields: dict[str, Any] = raw["fields"]
    priority = fields.get("priority")
    parent = fields.get("parent")
    issue_type = (fields.get("issuetype") or {}).get("name", "")

    common: dict[str, Any] = {
        "id": str(raw["id"]),
        "key": raw["key"],
        "summary": fields.get("summary") or "",
        "description": decode_rich_text(fields.get("description")),
        "status": (fields.get("status") or {}).get("name", ""),
        "issue_type": issue_type,
        "priority": Priority(name=priority["name"], id=str(priority.get("id", ""))) if priority else None,
        "due_date": fields.get("duedate"),
        "parent_id": str(parent["id"]) if parent else None,
        "epic_key": fields.get(epic_fields.link),
        "attachments": tuple(decode_attachment(a) for a in fields.get("attachment") or []),
        "reporter": decode_user(fields.get("reporter")),
        "creator": decode_user(fields.get("creator")),
        "created": fields.get("created") or "",
    }
    if issue_type == EPIC_ISSUE_TYPE:
        return EpicRecord(
            **common,
            epic_name=fields.get(epic_fields.name),
            colour_code=fields.get(epic_fields.colour),
        )
    return SourceRecord(**common)


def decode_comment(raw: dict[str, Any]) -> Comment:
    return Comment(
        id=str(raw["id"]),
        author=decode_user(raw.get("author")),
        body=decode_rich_text(raw.get("body")),
        created=raw.get("created", ""),
    )


class JiraSource:
    """RecordSource backed by the Jira Cloud REST API."""

    _session: requests.Session
    _base_url: str
    _diagnostics_path: Path
    _epic_fields: EpicFieldIds

    def __init__(
        self,
        session: requests.Session,
        hostname: str,
        *,
        diagnostics_path: Path = DEFAULT_DIAGNOSTICS_PATH,
        epic_fields: EpicFieldIds | None = None,
    ) -> None:
        self._session = session
        self._base_url = f"https://{hostname}/rest/api/3"
        self._diagnostics_path = diagnostics_path
        self._epic_fields = epic_fields or EpicFieldIds()

    def _get(self, path: str, params: dict[str, Any] | None = None, *, stream: bool = False) -> requests.Response:
        url = f"{self._base_url}{path}"
        try:
            response = self._session.get(url, params=params, timeout=REQUEST_TIMEOUT, stream=stream)
        except requests.RequestException as e:
            msg = f"Request to {url} failed: {e}"
            raise TransportError(msg) from e

        if response.status_code != 200:
            logger.error(f"Jira returned {response.status_code} for {url}. Body content was: {response.text}")
            msg = f"Jira returned {response.status_code} for {url}"
            raise TransportError(msg)
        return response

    def _decode_page(self, response: requests.Response, items_key: str, decode: Callable[[Any], Any]) -> Page[Any]:
        """Decode a paged response, dumping the raw body for diagnosis if it doesn't fit the schema."""
        try:
            data = response.json()
            return Page(items=[decode(item) for item in data[items_key]], total=int(data["total"]))
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            self._write_diagnostics(response.content)
            msg = f"Could not understand Jira response from {response.url}: {e}"
            raise DecodeError(msg) from e

    def _write_diagnostics(self, content: bytes) -> None:
        logger.error(f"Unmarshalling error. Invalid content is being written to '{self._diagnostics_path}'")
        try:
            self._diagnostics_path.write_bytes(content)
        except OSError:
            logger.exception(f"Could not write diagnostics to {self._diagnostics_path}")

    def search_records(self, query: str, offset: int, page_size: int) -> Page[SourceRecord]:
        params: dict[str, Any] = {
            "startAt": offset,
            "maxResults": page_size,
            "fields": "*all",
            "expand": "names",
        }
        if query:
            params["jql"] = query
        response = self._get("/search", params)
        return self._decode_page(response, "issues", lambda raw: decode_record(raw, self._epic_fields))

    def list_comments(self, record_key: str, offset: int, page_size: int) -> Page[Comment]:
        response = self._get(f"/issue/{record_key}/comment", {"startAt": offset, "maxResults": page_size})
        return self._decode_page(response, "comments", decode_comment)

    def fetch_attachment_bytes(self, attachment_id: str) -> Path:
        response = self._get(f"/attachment/content/{attachment_id}", {"redirect": "false"}, stream=True)

        temp_path: Path | None = None
        try:
            with tempfile.NamedTemporaryFile(delete=False, prefix="trelloatt") as temp_file:
                temp_path = Path(temp_file.name)
                for chunk in response.iter_content(chunk_size=65536):
                    temp_file.write(chunk)
        except requests.RequestException as e:
            self._discard(temp_path)
            msg = f"Failed to download attachment {attachment_id}: {e}"
            raise TransportError(msg) from e
        except OSError as e:
            self._discard(temp_path)
            msg = f"Failed to write attachment {attachment_id} to a temporary file: {e}"
            raise LocalIOError(msg) from e

        logger.debug(f"Downloaded attachment {attachment_id} to '{temp_path}'")
        return temp_path

    @staticmethod
    def _discard(path: Path | None) -> None:
        if path is not None:
            path.unlink(missing_ok=True)
