"""Trello REST API v1 access: the RecordSink used for real migrations."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Final

import requests

from . import utils
from .exceptions import DecodeError, LocalIOError, TransportError
from .models import ListInfo, LookupField, LookupOption

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    from .models import Card

# Module-wide logger
logger: logging.Logger = logging.getLogger(__name__)

_KEY_ENV_VAR: Final[str] = "TRELLO_KEY"
_TOKEN_ENV_VAR: Final[str] = "TRELLO_TOKEN"  # noqa: S105
_DEFAULT_KEY_PASS_PATH: Final[str] = "trello/cli/key"
_DEFAULT_TOKEN_PASS_PATH: Final[str] = "trello/cli/token"  # noqa: S105

API_URL: Final[str] = "https://api.trello.com/1"
REQUEST_TIMEOUT: Final[int] = 30
# Trello's option colour when none is given
NO_COLOUR: Final[str] = "none"


def get_credentials(key_pass_path: str | None = None, token_pass_path: str | None = None) -> tuple[str, str]:
    """Get the Trello API key and token from pass, env vars TRELLO_KEY/TRELLO_TOKEN or default pass paths."""
    key = utils.resolve_secret(key_pass_path, _KEY_ENV_VAR, _DEFAULT_KEY_PASS_PATH)
    token = utils.resolve_secret(token_pass_path, _TOKEN_ENV_VAR, _DEFAULT_TOKEN_PASS_PATH)
    if not key or not token:
        msg = f"Trello credentials not found: set {_KEY_ENV_VAR} and {_TOKEN_ENV_VAR} or store them in pass"
        raise ValueError(msg)
    return key, token


def get_session() -> requests.Session:
    """Get a requests session for Trello. Credentials travel as query parameters, not on the session."""
    session = requests.Session()
    session.headers["Accept"] = "application/json"
    return session


def decode_option(raw: dict[str, Any]) -> LookupOption:
    return LookupOption(
        id=raw["id"],
        text=(raw.get("value") or {}).get("text", ""),
        colour="" if raw.get("color") in (None, NO_COLOUR) else raw["color"],
        pos=float(raw.get("pos", 0)),
    )


def decode_field(raw: dict[str, Any]) -> LookupField:
    return LookupField(
        id=raw["id"],
        board_id=raw.get("idModel", ""),
        name=raw["name"],
        field_type=raw.get("type", ""),
        options=tuple(decode_option(o) for o in raw.get("options") or []),
    )


def encode_option(option: LookupOption) -> dict[str, Any]:
    return {
        "value": {"text": option.text},
        "color": option.colour or NO_COLOUR,
        "pos": option.pos,
    }


def encode_card(card: Card) -> dict[str, Any]:
    """Build the query parameters for creating a card. Unset optional values are omitted."""
    params: dict[str, Any] = {
        "idList": card.list_id,
        "name": card.title,
        "desc": card.description,
        "pos": card.position,
    }
    if card.due_date is not None:
        params["due"] = card.due_date
    if card.due_complete is not None:
        params["dueComplete"] = "true" if card.due_complete else "false"
    if card.members:
        params["idMembers"] = ",".join(card.members)
    if card.labels:
        params["idLabels"] = ",".join(card.labels)
    return params


class TrelloSink:
    """RecordSink backed by the Trello REST API."""

    _session: requests.Session
    _auth: dict[str, str]

    def __init__(self, session: requests.Session, *, api_key: str, token: str) -> None:
        self._session = session
        self._auth = {"key": api_key, "token": token}

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        **kwargs: Any,  # noqa: ANN401 - forwarded to requests
    ) -> requests.Response:
        url = f"{API_URL}{path}"
        try:
            response = self._session.request(
                method, url, params=self._auth | (params or {}), timeout=REQUEST_TIMEOUT, **kwargs
            )
        except requests.RequestException as e:
            msg = f"{method} {path} failed: {e}"
            raise TransportError(msg) from e

        if response.status_code != 200:
            logger.error(f"Trello returned {response.status_code} for {method} {path}: {response.text}")
            msg = f"Trello returned {response.status_code} for {method} {path}"
            raise TransportError(msg)
        return response

    @staticmethod
    def _json(response: requests.Response) -> Any:  # noqa: ANN401 - raw JSON
        try:
            return response.json()
        except ValueError as e:
            logger.error(f"Invalid response was: {response.text}")
            msg = f"Could not understand Trello response: {e}"
            raise DecodeError(msg) from e

    def list_lists(self, board_id: str) -> list[ListInfo]:
        data = self._json(self._request("GET", f"/boards/{board_id}/lists"))
        try:
            return [ListInfo(id=item["id"], name=item["name"]) for item in data]
        except (AttributeError, KeyError, TypeError) as e:
            msg = f"Unexpected list data for board {board_id}: {e}"
            raise DecodeError(msg) from e

    def list_lookup_fields(self, board_id: str) -> list[LookupField]:
        data = self._json(self._request("GET", f"/boards/{board_id}/customFields"))
        try:
            return [decode_field(item) for item in data]
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            msg = f"Unexpected custom field data for board {board_id}: {e}"
            raise DecodeError(msg) from e

    def create_lookup_field(
        self,
        board_id: str,
        name: str,
        field_type: str,
        initial_options: Sequence[LookupOption],
    ) -> LookupField:
        payload = {
            "idModel": board_id,
            "modelType": "board",
            "name": name,
            "type": field_type,
            "options": [encode_option(option) for option in initial_options],
            "pos": "bottom",
            "display_cardFront": True,
        }
        data = self._json(self._request("POST", "/customFields", json=payload))
        try:
            field = decode_field(data)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            msg = f"Unexpected response creating field '{name}': {e}"
            raise DecodeError(msg) from e
        logger.info(f"Successfully created field '{name}' on board '{board_id}'")
        return field

    def add_lookup_option(self, field_id: str, option: LookupOption) -> None:
        _ = self._request("POST", f"/customFields/{field_id}/options", json=encode_option(option))
        logger.debug(f"Successfully added option '{option.text}' to {field_id}")

    def create_card(self, card: Card) -> str:
        data = self._json(self._request("POST", "/cards", params=encode_card(card)))
        try:
            card_id: str = data["id"]
        except (AttributeError, KeyError, TypeError) as e:
            msg = f"Unexpected response creating card '{card.title}': {e}"
            raise DecodeError(msg) from e
        logger.debug(f"Created new card '{card.title}' at '{data.get('shortUrl', '')}'")
        return card_id

    def set_lookup_value(self, card_id: str, field_id: str, option_id: str) -> None:
        _ = self._request("PUT", f"/cards/{card_id}/customField/{field_id}/item", json={"idValue": option_id})

    def set_text_field_value(self, card_id: str, field_id: str, text: str) -> None:
        _ = self._request("PUT", f"/cards/{card_id}/customField/{field_id}/item", json={"value": {"text": text}})

    def append_comment(self, card_id: str, text: str) -> None:
        _ = self._request("POST", f"/cards/{card_id}/actions/comments", params={"text": text})

    def upload_attachment(self, card_id: str, path: Path, filename: str, mime_type: str) -> None:
        try:
            with path.open("rb") as file:
                _ = self._request(
                    "POST",
                    f"/cards/{card_id}/attachments",
                    files={"file": (filename, file, mime_type or "application/octet-stream")},
                    data={"mimeType": mime_type, "name": filename},
                )
        except OSError as e:
            msg = f"Could not read {path} for upload: {e}"
            raise LocalIOError(msg) from e
        logger.debug(f"Uploaded attachment from {path} to Trello for {filename}")
