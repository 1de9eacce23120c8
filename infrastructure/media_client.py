"""HTTP client for the remote media storage API.

Uploads are sent as one multipart request with a `files` field per file;
deletes as one JSON request listing the server keys. Every transport, HTTP or
parse problem is raised as `TransportFailure` so callers deal with a single
error type.
"""

from __future__ import annotations

from contextlib import ExitStack
from typing import Any, Optional

from loguru import logger
import requests

from core.errors import TransportFailure
from core.models import Credential, PendingFile
from core.services.interfaces import DeleteResponse, UploadResponse

DEFAULT_UPLOAD_PATH = "api/v1/upload-file"
DEFAULT_DELETE_PATH = "api/v1/delete-file"
DEFAULT_TIMEOUT_SECS = 60


def build_url(server_url: str, path: str) -> str:
    """Join the server base URL and an API path with exactly one slash."""
    return f"{server_url.rstrip('/')}/{path.lstrip('/')}"


def _parse_failed(raw: Any) -> list[tuple[str, str]]:
    failed: list[tuple[str, str]] = []
    for item in raw or []:
        if isinstance(item, str):
            failed.append((item, "rejected"))
        elif isinstance(item, dict) and isinstance(item.get("key"), str):
            failed.append((item["key"], str(item.get("reason", "rejected"))))
        else:
            raise TransportFailure(f"Unexpected failed entry: {item!r}")
    return failed


class HttpMediaServiceClient:
    """Media service client backed by `requests`."""

    def __init__(
        self,
        upload_path: str = DEFAULT_UPLOAD_PATH,
        delete_path: str = DEFAULT_DELETE_PATH,
        timeout_secs: float = DEFAULT_TIMEOUT_SECS,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.upload_path = upload_path
        self.delete_path = delete_path
        self.timeout = timeout_secs
        self._session = session
        self._owns_session = session is None

    def close(self) -> None:
        if self._owns_session and self._session:
            self._session.close()
            self._session = None

    def _request(self, method: str, url: str, credential: Credential, **kwargs: Any) -> Any:
        if self._session is None:
            self._session = requests.Session()
        headers = {"Authorization": f"Bearer {credential.token}"}
        headers.update(kwargs.pop("headers", {}))
        try:
            resp = self._session.request(
                method, url, headers=headers, timeout=self.timeout, **kwargs
            )
        except requests.RequestException as ex:
            raise TransportFailure(f"{method} {url} failed: {ex}") from ex

        if not resp.ok:
            raise TransportFailure(f"{method} {url} returned HTTP {resp.status_code}")
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as ex:
            raise TransportFailure(f"{method} {url} returned invalid JSON") from ex

    def upload(self, files: list[PendingFile], credential: Credential) -> UploadResponse:
        """Upload `files` in one batch.

        Returns:
            The locators the server assigned, in response order.

        Raises:
            TransportFailure: On network errors, non-2xx status, a response
                without `success: true`, or a malformed file list.
        """
        url = build_url(credential.server_url, self.upload_path)
        with ExitStack() as stack:
            try:
                parts = [
                    ("files", (f.name, stack.enter_context(open(f.path, "rb")), f.mime_type))
                    for f in files
                ]
            except OSError as ex:
                raise TransportFailure(f"Cannot read file for upload: {ex}") from ex
            data = self._request("POST", url, credential, files=parts)

        if not isinstance(data, dict) or not data.get("success"):
            raise TransportFailure(f"Upload rejected by server: {data!r}")
        raw_files = data.get("files")
        if not isinstance(raw_files, list):
            raise TransportFailure("Upload response has no file list")
        locations: list[str] = []
        for item in raw_files:
            location = item.get("location") if isinstance(item, dict) else None
            if not isinstance(location, str) or not location:
                raise TransportFailure(f"Upload response entry has no location: {item!r}")
            locations.append(location)
        logger.info("Server accepted {} of {} file(s)", len(locations), len(files))
        return UploadResponse(locations=locations)

    def delete(self, keys: list[str], credential: Credential) -> DeleteResponse:
        """Delete `keys` in one batch.

        A successful response without a `deleted` list acknowledges every
        requested key except those listed under `failed`.

        Raises:
            TransportFailure: On network errors, non-2xx status or a malformed
                acknowledgement.
        """
        url = build_url(credential.server_url, self.delete_path)
        data = self._request(
            "DELETE",
            url,
            credential,
            json={"fileKeys": list(keys)},
            headers={"Content-Type": "application/json"},
        )

        body = data if isinstance(data, dict) else {}
        if body.get("success") is False:
            raise TransportFailure(f"Delete rejected by server: {body!r}")
        failed = _parse_failed(body.get("failed"))
        failed_keys = {key for key, _ in failed}
        deleted = body.get("deleted")
        if deleted is None:
            deleted_keys = [k for k in keys if k not in failed_keys]
        elif isinstance(deleted, list) and all(isinstance(k, str) for k in deleted):
            deleted_keys = list(deleted)
        else:
            raise TransportFailure(f"Unexpected deleted list: {deleted!r}")
        logger.info("Server deleted {} key(s), rejected {}", len(deleted_keys), len(failed))
        return DeleteResponse(deleted_keys=deleted_keys, failed=failed)
