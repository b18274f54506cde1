"""
API errors of the remote systems: the Kubernetes API & Google Cloud APIs.

The underlying client library (now, ``aiohttp``) can be replaced in the future.
We cannot rely on embedding its exceptions all over the code in the providers.
Hence, we have our own hierarchy of exceptions for the APIs' errors.

Low-level errors, such as the network connectivity issues, SSL/HTTPS issues,
etc, are escalated from the client library as is, since they are related not
to the domain of the APIs, but rather to the networking and encryption.

The original errors of the client library are chained as the causes of our own
specialised errors -- for better explainability of errors in the stack traces.

Some selected HTTP statuses are made into their own classes, so that they
could be intercepted and handled in the resources: e.g. HTTP 404 means that
the resource is gone, which is not an error for reading or deleting it.
All other statuses are raised as the base error classes and are
indistinguishable from each other (except via the exception's fields).

Unlike the client library's errors, these errors contain the information
as provided by the APIs in their response bodies, not guessed only
by the HTTP statuses alone. Both dialects are understood:

* Kubernetes' ``Status`` objects (``{"kind": "Status", "message": ...}``);
* Google's error envelopes (``{"error": {"code": ..., "message": ...}}``).
"""
import collections.abc
import json
from typing import Any, Collection, Mapping

import aiohttp
from typing_extensions import Literal, TypedDict


class RawStatusCause(TypedDict):
    field: str
    reason: str
    message: str


class RawStatusDetails(TypedDict):
    name: str
    uid: str
    retryAfterSeconds: int
    kind: str
    group: str
    causes: Collection[RawStatusCause]


# https://kubernetes.io/docs/reference/generated/kubernetes-api/v1.19/#status-v1-meta
class RawStatus(TypedDict):
    apiVersion: str
    kind: Literal["Status"]
    code: int
    status: Literal["Success", "Failure"]
    reason: str
    message: str
    details: RawStatusDetails


class RawGoogleErrorItem(TypedDict, total=False):
    domain: str
    reason: str
    message: str
    location: str


# https://cloud.google.com/apis/design/errors#http_mapping
class RawGoogleError(TypedDict, total=False):
    code: int
    message: str
    status: str
    errors: Collection[RawGoogleErrorItem]


class APIError(Exception):

    def __init__(
            self,
            payload: Mapping[str, Any] | None,
            *,
            status: int,
    ) -> None:
        message = payload.get('message') if payload else None
        super().__init__(message or f"HTTP {status}", payload)
        self._status = status
        self._payload = payload

    @property
    def status(self) -> int:
        return self._status

    @property
    def code(self) -> int | None:
        return self._payload.get('code') if self._payload else None

    @property
    def message(self) -> str | None:
        return self._payload.get('message') if self._payload else None

    @property
    def reason(self) -> str | None:
        if not self._payload:
            return None
        if 'reason' in self._payload:  # Kubernetes
            return self._payload.get('reason')
        items = self._payload.get('errors') or []  # Google
        return items[0].get('reason') if items else None

    @property
    def details(self) -> Mapping[str, Any] | None:
        return self._payload.get('details') if self._payload else None


class APIClientError(APIError):
    pass


class APIServerError(APIError):
    pass


class APIUnauthorizedError(APIClientError):
    pass


class APIForbiddenError(APIClientError):
    pass


class APINotFoundError(APIClientError):
    pass


class APIConflictError(APIClientError):
    pass


class APITooManyRequestsError(APIClientError):
    pass


def extract_payload(data: object) -> Mapping[str, Any] | None:
    """
    Extract the error information from the body in either of the dialects.

    Better be safe: who knows which sensitive information can be dumped,
    so only the known error structures are kept, everything else is ignored.
    """
    if not isinstance(data, collections.abc.Mapping):
        return None
    if data.get('kind') == 'Status':
        return data
    if isinstance(data.get('error'), collections.abc.Mapping):
        return data['error']
    return None


async def check_response(
        response: aiohttp.ClientResponse,
) -> None:
    """
    Check for specialised API errors, and raise with extended information.
    """
    if response.status >= 400:

        # Read the response's body before it is closed by raise_for_status().
        payload: Mapping[str, Any] | None
        try:
            payload = extract_payload(await response.json())
        except (json.JSONDecodeError, aiohttp.ContentTypeError, aiohttp.ClientConnectionError):
            payload = None

        cls = (
            APIUnauthorizedError if response.status == 401 else
            APIForbiddenError if response.status == 403 else
            APINotFoundError if response.status == 404 else
            APIConflictError if response.status == 409 else
            APITooManyRequestsError if response.status == 429 else
            APIClientError if response.status < 500 else
            APIServerError
        )

        # Raise the specialised error while keeping the original error in scope.
        # This call also closes the response's body, so it cannot be read afterwards.
        try:
            response.raise_for_status()
        except aiohttp.ClientResponseError as e:
            raise cls(payload, status=response.status) from e
