"""Google Sheets access used as the range store of the ledger.

Only three calls are needed: read a range, append rows, and write many
discontiguous cells in one request. Every transport or credential problem is
raised as ``RangeStoreError`` and handled by the callers.
"""
import json
from http.client import HTTPException as HttpClientError
from typing import NamedTuple, Optional, Protocol, Sequence
from urllib.parse import quote

import requests
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import AuthorizedSession
from google.oauth2 import service_account

from app.core.config import (
    GOOGLE_CLIENT_EMAIL,
    GOOGLE_PRIVATE_KEY,
    GOOGLE_PROJECT_ID,
    GOOGLE_SERVICE_ACCOUNT_JSON,
    SHEETS_TIMEOUT_SECONDS,
)

GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"
SHEETS_API_URL = "https://sheets.googleapis.com/v4/spreadsheets"
SHEETS_SCOPE = "https://www.googleapis.com/auth/spreadsheets"


class RangeStoreError(Exception):
    pass


class CellUpdate(NamedTuple):
    range: str
    value: str


class RangeStore(Protocol):
    def get_values(self, range_name: str) -> list[list[str]]:
        ...

    def append_rows(self, range_name: str, rows: Sequence[Sequence[str]]) -> None:
        ...

    def batch_update(self, updates: Sequence[CellUpdate]) -> None:
        ...


def load_service_account_credentials() -> dict:
    if GOOGLE_SERVICE_ACCOUNT_JSON:
        try:
            credentials = json.loads(GOOGLE_SERVICE_ACCOUNT_JSON)
        except json.JSONDecodeError as exc:
            raise RangeStoreError("GOOGLE_SERVICE_ACCOUNT_JSON invalido.") from exc
        if not isinstance(credentials, dict):
            raise RangeStoreError("GOOGLE_SERVICE_ACCOUNT_JSON invalido.")
        private_key = credentials.get("private_key")
        if isinstance(private_key, str):
            credentials["private_key"] = private_key.replace("\\n", "\n")
        credentials.setdefault("token_uri", GOOGLE_TOKEN_URI)
        return credentials

    if not GOOGLE_CLIENT_EMAIL or not GOOGLE_PRIVATE_KEY:
        raise RangeStoreError(
            "Credenciais Google faltando. Configure GOOGLE_CLIENT_EMAIL e GOOGLE_PRIVATE_KEY "
            "(opcional GOOGLE_PROJECT_ID) ou GOOGLE_SERVICE_ACCOUNT_JSON."
        )
    return {
        "type": "service_account",
        "project_id": GOOGLE_PROJECT_ID,
        "client_email": GOOGLE_CLIENT_EMAIL,
        "private_key": GOOGLE_PRIVATE_KEY.replace("\\n", "\n"),
        "token_uri": GOOGLE_TOKEN_URI,
    }


def build_authorized_session(info: dict) -> AuthorizedSession:
    try:
        credentials = service_account.Credentials.from_service_account_info(info, scopes=[SHEETS_SCOPE])
    except (ValueError, TypeError, GoogleAuthError) as exc:
        raise RangeStoreError(f"Credenciais Google invalidas: {exc}") from exc
    return AuthorizedSession(credentials)


class SheetsRangeStore:
    def __init__(
        self,
        spreadsheet_id: str,
        credentials: Optional[dict] = None,
        timeout: float = SHEETS_TIMEOUT_SECONDS,
        session=None,
    ):
        self.spreadsheet_id = spreadsheet_id
        self.timeout = timeout
        self._credentials = credentials
        self._session = session

    def _authorized_session(self):
        if self._session is None:
            info = self._credentials if self._credentials is not None else load_service_account_credentials()
            self._session = build_authorized_session(info)
        return self._session

    def _send(self, method: str, endpoint: str, **kwargs) -> dict:
        session = self._authorized_session()
        try:
            response = session.request(method.upper(), endpoint, timeout=self.timeout, **kwargs)
        except (requests.RequestException, GoogleAuthError, HttpClientError, OSError) as exc:
            raise RangeStoreError(f"Falha de conexão com Google Sheets: {exc}") from exc

        if response.status_code >= 400:
            raise RangeStoreError(f"Google Sheets respondeu {response.status_code}: {response.text[:300]}")
        if not response.content:
            return {}
        try:
            parsed = response.json()
        except ValueError as exc:
            raise RangeStoreError("Resposta invalida do Google Sheets.") from exc
        return parsed if isinstance(parsed, dict) else {}

    def _values_endpoint(self, suffix: str = "") -> str:
        if not self.spreadsheet_id:
            raise RangeStoreError("SPREADSHEET_ID nao configurado.")
        return f"{SHEETS_API_URL}/{quote(self.spreadsheet_id, safe='')}/values{suffix}"

    def get_values(self, range_name: str) -> list[list[str]]:
        endpoint = self._values_endpoint(f"/{quote(range_name, safe='')}")
        payload = self._send("GET", endpoint)
        return [[str(cell) for cell in row] for row in payload.get("values") or []]

    def append_rows(self, range_name: str, rows: Sequence[Sequence[str]]) -> None:
        endpoint = self._values_endpoint(f"/{quote(range_name, safe='')}:append")
        self._send(
            "POST",
            endpoint,
            params={"valueInputOption": "USER_ENTERED", "insertDataOption": "INSERT_ROWS"},
            json={"values": [list(row) for row in rows]},
        )

    def batch_update(self, updates: Sequence[CellUpdate]) -> None:
        if not updates:
            return
        self._send(
            "POST",
            self._values_endpoint(":batchUpdate"),
            json={
                "valueInputOption": "USER_ENTERED",
                "data": [{"range": update.range, "values": [[update.value]]} for update in updates],
            },
        )
