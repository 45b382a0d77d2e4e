"""Trac wiki as the remote document store.

The remote id of a published document is its wiki page name.  Deletion
failures are classified into "not found" (the page is already gone,
which cleanup treats as success) and everything else.
"""

from __future__ import annotations

import logging
import xmlrpc.client
from collections.abc import Mapping

import requests

from ..sync.models import RemoteErrorKind
from .async_utils import run_sync_limited
from .client import TracClient

logger = logging.getLogger(__name__)

# Fault code TracXMLRPC uses for ResourceNotFound; 1 is its generic error
_NOT_FOUND_FAULT_CODES = (404,)
_NOT_FOUND_MARKERS = (
    "notfoundexception",
    "resourcenotfound",
    "does not exist",
    "not found",
    '"statuscode":404',
)


def _status_is_404(value: object) -> bool:
    try:
        return int(value) == 404  # type: ignore[call-overload]
    except (TypeError, ValueError):
        return False


def _mapping_says_404(data: object) -> bool:
    if not isinstance(data, Mapping):
        return False
    return _status_is_404(data.get("statusCode")) or _status_is_404(
        data.get("status_code")
    )


def classify_remote_error(error: object) -> RemoteErrorKind:
    """Classify a failed remote call as NOT_FOUND or OTHER.

    Recognises XML-RPC faults, HTTP errors with a 404 status, objects
    carrying a 404 status (directly, in a body, or in a response), and
    messages naming a not-found condition.  Never raises.
    """
    try:
        if isinstance(error, xmlrpc.client.Fault):
            if error.faultCode in _NOT_FOUND_FAULT_CODES:
                return RemoteErrorKind.NOT_FOUND
            message = str(error.faultString)
        else:
            if isinstance(error, requests.HTTPError):
                response = error.response
                if response is not None and _status_is_404(
                    response.status_code
                ):
                    return RemoteErrorKind.NOT_FOUND

            for attr in ("status_code", "statusCode", "status"):
                if _status_is_404(getattr(error, attr, None)):
                    return RemoteErrorKind.NOT_FOUND
            if _mapping_says_404(getattr(error, "body", None)):
                return RemoteErrorKind.NOT_FOUND

            response = getattr(error, "response", None)
            if response is not None:
                if _status_is_404(getattr(response, "status", None)):
                    return RemoteErrorKind.NOT_FOUND
                if _status_is_404(getattr(response, "status_code", None)):
                    return RemoteErrorKind.NOT_FOUND
                if _mapping_says_404(getattr(response, "data", None)):
                    return RemoteErrorKind.NOT_FOUND

            message = str(error)
    except Exception:
        logger.debug("Could not inspect remote error %r", error, exc_info=True)
        return RemoteErrorKind.OTHER

    lowered = message.lower().replace(" :", ":").replace(": ", ":")
    if any(marker in lowered for marker in _NOT_FOUND_MARKERS):
        return RemoteErrorKind.NOT_FOUND
    return RemoteErrorKind.OTHER


class TracDocumentStore:
    """Remote store backed by Trac wiki pages."""

    def __init__(self, client: TracClient) -> None:
        self.client = client

    async def delete_by_id(self, remote_id: str) -> None:
        """Delete the wiki page *remote_id*.

        Raises:
            xmlrpc.client.Fault: If the page is missing or deletion is refused.
            requests.RequestException: On transport failures.
        """
        logger.info("Deleting wiki page %s", remote_id)
        await run_sync_limited(self.client.delete_wiki_page, remote_id)

    def classify_remote_error(self, error: BaseException) -> RemoteErrorKind:
        return classify_remote_error(error)
