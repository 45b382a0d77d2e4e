"""XML-RPC client for the Trac wiki calls live sync needs.

Only three remote operations are used: an API version probe at startup,
``wiki.putPage`` for every publish and ``wiki.deletePage`` for orphan
cleanup.  Calls are blocking; the async layer runs them in worker threads,
so each thread gets its own ``requests.Session``.
"""

import threading
import xmlrpc.client
from typing import Any
from xml.etree import ElementTree

import requests

from ..config import Config
from ..validators import validate_content, validate_page_name

_CONNECT_TIMEOUT = 10
_READ_TIMEOUT = 60


class PageNotModifiedError(ValueError):
    """Raised when Trac rejects a save because the content is identical."""


def _decode_value(element: ElementTree.Element | None) -> Any:
    """Convert an XML-RPC ``<value>`` element to a Python object."""
    if element is None:
        return None
    if len(element) == 0:
        # Untyped <value>text</value> is a string
        return element.text or ""
    typed = element[0]
    match typed.tag:
        case "array":
            return [_decode_value(v) for v in typed.iterfind("./data/value")]
        case "struct":
            return {
                member.findtext("name"): _decode_value(member.find("value"))
                for member in typed.iterfind("member")
            }
        case "int" | "i4":
            return int(typed.text)
        case "boolean":
            return typed.text == "1"
        case "double":
            return float(typed.text)
        case "string":
            return typed.text or ""
        case _:
            return typed.text


def _fault_from(tree: ElementTree.Element) -> xmlrpc.client.Fault | None:
    fault = tree.find("./fault/value")
    if fault is None:
        return None
    detail = _decode_value(fault)
    if not isinstance(detail, dict):
        detail = {}
    return xmlrpc.client.Fault(
        int(detail.get("faultCode") or 0),
        detail.get("faultString") or "Unknown error",
    )


class TracClient:
    def __init__(self, config: Config):
        self.config = config
        self._thread_local = threading.local()
        self.rpc_url = f"{config.trac_url.rstrip('/')}/login/rpc"

    @property
    def session(self) -> requests.Session:
        """The requests session bound to the calling thread."""
        session = getattr(self._thread_local, "session", None)
        if session is None:
            session = requests.Session()
            session.auth = (self.config.username, self.config.password)
            session.verify = not self.config.insecure
            self._thread_local.session = session
        return session

    def _call(self, method: str, *params: Any) -> Any:
        """
        Invoke *method* (e.g. ``wiki.putPage``) and return its decoded result.

        Raises:
            requests.HTTPError: On a non-2xx HTTP status
            xmlrpc.client.Fault: When the response carries a fault
        """
        response = self.session.post(
            self.rpc_url,
            data=xmlrpc.client.dumps(params, methodname=method),
            headers={"Content-Type": "text/xml"},
            timeout=(_CONNECT_TIMEOUT, _READ_TIMEOUT),
        )
        response.raise_for_status()

        tree = ElementTree.fromstring(response.content)
        fault = _fault_from(tree)
        if fault is not None:
            raise fault
        return _decode_value(tree.find("./params/param/value"))

    def validate_connection(self) -> str:
        """Return the Trac XML-RPC API version; raises if Trac is unreachable."""
        version = self._call("system.getAPIVersion")
        return str(version) if version is not None else ""

    def put_wiki_page(self, page_name: str, content: str, comment: str) -> None:
        """
        Create or overwrite a wiki page.

        Raises:
            PageNotModifiedError: If the page already holds this content
            ValueError: If page_name or content fail validation, or Trac
                reports the save as unsuccessful
            xmlrpc.client.Fault: If server returns error or permissions denied
        """
        is_valid, error_msg = validate_page_name(page_name)
        if not is_valid:
            raise ValueError(f"Invalid page name: {error_msg}")

        is_valid, error_msg = validate_content(content)
        if not is_valid:
            raise ValueError(f"Invalid content: {error_msg}")

        try:
            saved = self._call(
                "wiki.putPage", page_name, content, {"comment": comment}
            )
        except xmlrpc.client.Fault as err:
            if "not modified" in err.faultString.lower():
                raise PageNotModifiedError(
                    "Page not modified (content identical)"
                ) from None
            raise
        if saved is not True:
            raise ValueError(f"Trac did not save page '{page_name}'")

    def delete_wiki_page(self, page_name: str) -> None:
        """
        Delete a wiki page and all its versions.

        Raises:
            xmlrpc.client.Fault: If page not found or permissions denied
            ValueError: If Trac reports the delete as unsuccessful
        """
        if self._call("wiki.deletePage", page_name) is not True:
            raise ValueError(f"Trac did not delete page '{page_name}'")
