import xmlrpc.client
from unittest.mock import patch

import pytest
import requests

from trac_live_sync.config import Config, load_config
from trac_live_sync.core.client import PageNotModifiedError, TracClient

_POST = "trac_live_sync.core.client.requests.Session.post"


def _response(value_xml: str) -> str:
    return f"""<?xml version="1.0"?>
<methodResponse>
  <params>
    <param>
      <value>{value_xml}</value>
    </param>
  </params>
</methodResponse>"""


def _fault(code: int, message: str) -> str:
    return f"""<?xml version="1.0"?>
<methodResponse>
  <fault>
    <value>
      <struct>
        <member>
          <name>faultCode</name>
          <value><int>{code}</int></value>
        </member>
        <member>
          <name>faultString</name>
          <value><string>{message}</string></value>
        </member>
      </struct>
    </value>
  </fault>
</methodResponse>"""


_TRUE = _response("<boolean>1</boolean>")
_FALSE = _response("<boolean>0</boolean>")


# TracClient construction
def test_rpc_url_construction(mock_config):
    """Test that RPC URL is constructed correctly."""
    client = TracClient(mock_config)
    assert client.rpc_url == "https://trac.example.com/trac/login/rpc"


def test_rpc_url_construction_with_trailing_slash():
    config = Config(
        trac_url="https://trac.example.com/",
        username="user",
        password="pass",
    )
    assert TracClient(config).rpc_url == "https://trac.example.com/login/rpc"


def test_session_creation_secure(mock_config):
    """Test that session is created with correct auth and SSL verification."""
    client = TracClient(mock_config)
    assert client.session.auth == ("testuser", "testpass")
    assert client.session.verify


def test_session_creation_insecure():
    config = Config(
        trac_url="https://trac.example.com",
        username="user",
        password="pass",
        insecure=True,
    )
    assert not TracClient(config).session.verify


def test_session_reused_within_thread(mock_config):
    client = TracClient(mock_config)
    assert client.session is client.session


# validate_connection and response decoding
@patch(_POST)
def test_validate_connection(mock_post, mock_config, mock_xml_response):
    mock_post.return_value = mock_xml_response(
        _response(
            "<array><data><value><int>1</int></value>"
            "<value><i4>3</i4></value></data></array>"
        )
    )

    result = TracClient(mock_config).validate_connection()

    assert result == "[1, 3]"
    kwargs = mock_post.call_args[1]
    assert "system.getAPIVersion" in kwargs["data"]
    assert kwargs["headers"] == {"Content-Type": "text/xml"}
    assert kwargs["timeout"] == (10, 60)


@patch(_POST)
def test_untyped_value_decodes_as_string(
    mock_post, mock_config, mock_xml_response
):
    mock_post.return_value = mock_xml_response(_response("1.2"))

    assert TracClient(mock_config).validate_connection() == "1.2"


@patch(_POST)
def test_struct_and_double_values(mock_post, mock_config, mock_xml_response):
    mock_post.return_value = mock_xml_response(
        _response(
            "<struct>"
            "<member><name>major</name><value><int>1</int></value></member>"
            "<member><name>ratio</name><value><double>0.5</double></value></member>"
            "</struct>"
        )
    )

    assert TracClient(mock_config).validate_connection() == (
        "{'major': 1, 'ratio': 0.5}"
    )


@patch(_POST)
def test_fault_raised(mock_post, mock_config, mock_xml_response):
    mock_post.return_value = mock_xml_response(
        _fault(404, "Wiki page 'Missing' does not exist")
    )

    with pytest.raises(xmlrpc.client.Fault) as exc_info:
        TracClient(mock_config).delete_wiki_page("Missing")

    assert exc_info.value.faultCode == 404
    assert "does not exist" in exc_info.value.faultString


@patch(_POST)
def test_http_error_raised(mock_post, mock_config, mock_xml_response):
    response = mock_xml_response(b"")
    response.raise_for_status.side_effect = requests.HTTPError("403")
    mock_post.return_value = response

    with pytest.raises(requests.HTTPError):
        TracClient(mock_config).validate_connection()


# put_wiki_page
@patch(_POST)
def test_put_wiki_page(mock_post, mock_config, mock_xml_response):
    mock_post.return_value = mock_xml_response(_TRUE)

    result = TracClient(mock_config).put_wiki_page(
        "Notes/Guide", "= Page Content =", "Live sync from Guide.md"
    )

    assert result is None
    mock_post.assert_called_once()
    payload = mock_post.call_args[1]["data"]
    assert "wiki.putPage" in payload
    assert "Notes/Guide" in payload
    assert "= Page Content =" in payload
    assert "Live sync from Guide.md" in payload


@pytest.mark.parametrize(
    "name,content,message",
    [
        ("", "content", "Invalid page name"),
        ("../etc/passwd", "content", "Invalid page name"),
        ("Page", "", "Invalid content"),
    ],
)
def test_put_wiki_page_validates_before_request(
    mock_config, name, content, message
):
    with patch(_POST) as mock_post:
        with pytest.raises(ValueError, match=message):
            TracClient(mock_config).put_wiki_page(name, content, "comment")
        mock_post.assert_not_called()


@patch(_POST)
def test_put_wiki_page_not_modified(mock_post, mock_config, mock_xml_response):
    mock_post.return_value = mock_xml_response(
        _fault(1, "Page not modified - content is identical")
    )

    with pytest.raises(PageNotModifiedError):
        TracClient(mock_config).put_wiki_page("Page", "content", "comment")


@patch(_POST)
def test_put_wiki_page_refused(mock_post, mock_config, mock_xml_response):
    mock_post.return_value = mock_xml_response(_FALSE)

    with pytest.raises(ValueError, match="did not save page 'Page'"):
        TracClient(mock_config).put_wiki_page("Page", "content", "comment")


@patch(_POST)
def test_put_wiki_page_other_fault_propagates(
    mock_post, mock_config, mock_xml_response
):
    mock_post.return_value = mock_xml_response(
        _fault(403, "WIKI_CREATE privileges are required")
    )

    with pytest.raises(xmlrpc.client.Fault):
        TracClient(mock_config).put_wiki_page("Page", "content", "comment")


# delete_wiki_page
@patch(_POST)
def test_delete_wiki_page(mock_post, mock_config, mock_xml_response):
    mock_post.return_value = mock_xml_response(_TRUE)

    assert TracClient(mock_config).delete_wiki_page("Notes/Old") is None
    payload = mock_post.call_args[1]["data"]
    assert "wiki.deletePage" in payload
    assert "Notes/Old" in payload


@patch(_POST)
def test_delete_wiki_page_refused(mock_post, mock_config, mock_xml_response):
    mock_post.return_value = mock_xml_response(_FALSE)

    with pytest.raises(ValueError, match="did not delete page 'Notes/Old'"):
        TracClient(mock_config).delete_wiki_page("Notes/Old")


# Live instance (pytest --run-live, with TRAC_URL / TRAC_USERNAME / TRAC_PASSWORD)
@pytest.mark.live
def test_live_validate_connection():
    assert TracClient(load_config()).validate_connection()
