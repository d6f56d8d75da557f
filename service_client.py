"""HTTP adapter for the Fortner compression service.

The service is a black box reachable over plain HTTP:

* ``GET  /health``  liveness probe, also used with the key header to validate a key
* ``POST /encode``  multipart ``file`` field, returns the archive bytes
* ``POST /decode``  multipart ``file`` field, returns the recovered image

Endpoint and key are read from the settings store on every call so a change
takes effect on the next request. Transport failures surface as
``httpx.HTTPError``; a malformed endpoint raises ``httpx.InvalidURL`` and a
key that is not ASCII raises ``ValueError`` while headers are built.
Classifying responses is left to the caller.
"""

from __future__ import annotations

import mimetypes
from typing import Optional

import httpx

from interfaces import ConfigStore
from models import OperationKind, OperationRequest, Settings

API_KEY_HEADER = "X-API-Key"

DEFAULT_TRANSFER_TIMEOUT = httpx.Timeout(connect=10.0, read=300.0, write=300.0, pool=10.0)


class ServiceClient:
    def __init__(
        self,
        store: ConfigStore,
        http: Optional[httpx.Client] = None,
        transfer_timeout: httpx.Timeout = DEFAULT_TRANSFER_TIMEOUT,
    ) -> None:
        self._store = store
        self._owns_http = http is None
        self._http = http or httpx.Client()
        self._transfer_timeout = transfer_timeout

    @property
    def store(self) -> ConfigStore:
        return self._store

    def close(self) -> None:
        if self._owns_http:
            self._http.close()

    def health(self, timeout: float = 5.0) -> httpx.Response:
        base_url = self._store.get().base_url
        return self._http.get(f"{base_url}/health", timeout=timeout)

    def validate_key(self, key: str, timeout: float = 10.0) -> httpx.Response:
        base_url = self._store.get().base_url
        return self._http.get(
            f"{base_url}/health",
            headers={API_KEY_HEADER: key},
            timeout=timeout,
        )

    def post_file(self, request: OperationRequest, settings: Optional[Settings] = None) -> httpx.Response:
        settings = settings or self._store.get()
        content_type = _content_type(request)
        return self._http.post(
            f"{settings.base_url}/{request.kind.value}",
            headers={API_KEY_HEADER: settings.api_key},
            files={"file": (request.name, request.data or b"", content_type)},
            timeout=self._transfer_timeout,
        )


def _content_type(request: OperationRequest) -> str:
    if request.kind is OperationKind.DECODE:
        return "application/octet-stream"
    guessed, _ = mimetypes.guess_type(request.name)
    return guessed or "application/octet-stream"
