"""Synchronous client for the knowledge-store object and type API.

This module provides :class:`KnowledgeStoreClient`, the blocking HTTP
client used by ``copctl objects`` and ``copctl types``. It wraps
:class:`httpx.Client` and layers on:

- **Bearer auth** -- the session's access token is sent on every request.
- **Layer headers** -- object calls carry ``layer-id`` and ``layer-type``
  (``TENANT``, ``SOLUTION``, ...), which select the knowledge-store layer.
- **Error mapping** -- error statuses become typed
  :mod:`copctl.exceptions`.

Responses are returned as raw bytes; callers decide how to render them.
There are no automatic retries.
"""

from __future__ import annotations

import json
from typing import Any, Optional, Union

import httpx

from copctl.auth.constants import OBJECT_API_PATH, TYPE_API_PATH
from copctl.exceptions import AuthError, ConnectionError_, NotFoundError, ServerError
from copctl.models import ClientSession

Payload = Union[bytes, str, dict, list]

_CONTENT_TYPE = "application/json"


class KnowledgeStoreClient:
    """Knowledge-store API client bound to an authenticated session.

    Must be used as a context manager so that the underlying transport is
    opened and closed. When the session carries its own ``http_client`` it
    is used as-is and left open on exit.

    Args:
        session: Session with ``url`` and, normally, ``token`` populated
            by :meth:`~copctl.auth.manager.AuthManager.login`.

    Example::

        with KnowledgeStoreClient(session) as client:
            client.create_object("fmm:namespace", tenant, "TENANT", {"name": "ns"})
    """

    def __init__(self, session: ClientSession) -> None:
        self._session = session
        self._client: Optional[httpx.Client] = None
        self._owns_client = False

    # ------------------------------------------------------------------ #
    # Context manager
    # ------------------------------------------------------------------ #

    def __enter__(self) -> KnowledgeStoreClient:
        if self._session.http_client is not None:
            self._client = self._session.http_client
        else:
            self._client = httpx.Client(timeout=self._session.timeout, follow_redirects=True)
            self._owns_client = True
        return self

    def __exit__(self, *args: object) -> None:
        if self._client is not None and self._owns_client:
            self._client.close()
        self._client = None
        self._owns_client = False

    # ------------------------------------------------------------------ #
    # Objects
    # ------------------------------------------------------------------ #

    def get_object(
        self, type_name: str, object_id: str, layer_id: str, layer_type: str
    ) -> bytes:
        """Fetch one object, or list all objects of *type_name* when *object_id* is empty.

        Returns:
            The raw response body.

        Raises:
            AuthError: On 401 / 403.
            NotFoundError: On 404.
            ServerError: On any other error status.
            ConnectionError_: On network / timeout errors.
        """
        return self._request(
            "GET",
            self._object_url(type_name, object_id),
            layer=(layer_id, layer_type),
        )

    def create_object(
        self, type_name: str, layer_id: str, layer_type: str, payload: Payload
    ) -> bytes:
        """Create an object of *type_name* from a JSON *payload*."""
        return self._request(
            "POST",
            self._object_url(type_name),
            layer=(layer_id, layer_type),
            payload=payload,
        )

    def update_object(
        self,
        type_name: str,
        object_id: str,
        layer_id: str,
        layer_type: str,
        payload: Payload,
    ) -> bytes:
        """Replace the object *object_id* with *payload*."""
        return self._request(
            "PUT",
            self._object_url(type_name, object_id),
            layer=(layer_id, layer_type),
            payload=payload,
        )

    def delete_object(
        self, type_name: str, object_id: str, layer_id: str, layer_type: str
    ) -> bytes:
        """Delete the object *object_id*."""
        return self._request(
            "DELETE",
            self._object_url(type_name, object_id),
            layer=(layer_id, layer_type),
        )

    # ------------------------------------------------------------------ #
    # Types
    # ------------------------------------------------------------------ #

    def get_type(self, type_name: str) -> bytes:
        """Fetch the definition of the fully qualified type *type_name*."""
        return self._request("GET", f"{self._base_url()}{TYPE_API_PATH}{type_name}")

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _base_url(self) -> str:
        return self._session.url.rstrip("/")

    def _object_url(self, type_name: str, object_id: str = "") -> str:
        url = f"{self._base_url()}{OBJECT_API_PATH}{type_name}"
        if object_id:
            url += f"/{object_id}"
        return url

    def _headers(self, layer: Optional[tuple[str, str]]) -> dict[str, str]:
        headers = {"Content-Type": _CONTENT_TYPE, "Accept": _CONTENT_TYPE}
        if self._session.token:
            headers["Authorization"] = f"Bearer {self._session.token}"
        if layer is not None:
            headers["layer-id"], headers["layer-type"] = layer
        return headers

    def _request(
        self,
        method: str,
        url: str,
        layer: Optional[tuple[str, str]] = None,
        payload: Optional[Payload] = None,
    ) -> bytes:
        assert self._client is not None, "Client not initialised -- use as context manager"

        kwargs: dict[str, Any] = {"headers": self._headers(layer)}
        if isinstance(payload, (dict, list)):
            kwargs["content"] = json.dumps(payload).encode("utf-8")
        elif payload is not None:
            kwargs["content"] = payload

        try:
            response = self._client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise ConnectionError_(f"{method} request to {url!r} failed: {exc}") from exc

        self._map_response_error(response)
        return response.content

    def _map_response_error(self, response: httpx.Response) -> None:
        """Raise a typed exception for error HTTP status codes."""
        status = response.status_code
        if status < 400:
            return

        try:
            detail = response.json()
            if isinstance(detail, dict):
                msg = detail.get("message") or detail.get("error") or detail.get("detail") or ""
            else:
                msg = str(detail)
        except ValueError:
            msg = response.text[:200] if response.text else ""

        full_msg = f"HTTP {status}: {msg}" if msg else f"HTTP {status}"
        if status in (401, 403):
            raise AuthError(full_msg)
        if status == 404:
            raise NotFoundError(full_msg)
        raise ServerError(full_msg)
