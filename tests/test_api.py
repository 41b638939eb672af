"""Tests for ghbackup.github.api covering requests, errors and Link parsing.

Run with:
    pytest tests/test_api.py -v
"""

import pytest
import requests

from ghbackup.github.api import GitHubAPI, ListError, next_link

from .helpers import make_response


@pytest.mark.parametrize(
    "header, expected",
    [
        (None, None),
        ("", None),
        ('<https://api.github.com/x?page=2>; rel="next", <https://api.github.com/x?page=5>; rel="last"',
         "https://api.github.com/x?page=2"),
        ('<https://api.github.com/x?page=1>; rel="prev", <https://api.github.com/x?page=3>; rel="next"', None),
        ('<https://api.github.com/x?page=1>; rel="first"', None),
        ('<>; rel="next"', None),
    ],
)
def test_next_link_only_follows_first_entry(header, expected):
    assert next_link(header) == expected


def test_get_returns_payload_and_sends_basic_auth(transport):
    transport.request.return_value = make_response(200, {"type": "User"})
    api = GitHubAPI("https://api.github.com/", transport=transport, account="me", secret="s3cr3t")

    payload, _ = api.get(api.url("/users/me"))

    assert payload == {"type": "User"}
    call = transport.request.call_args
    assert call.args == ("GET", "https://api.github.com/users/me")
    auth = call.kwargs["auth"]
    assert (auth.username, auth.password) == ("me", "s3cr3t")


def test_get_without_secret_sends_no_auth(transport):
    transport.request.return_value = make_response(200, [])
    api = GitHubAPI("https://api.github.com", transport=transport)

    api.get(api.url("user/repos"))

    assert transport.request.call_args.kwargs["auth"] is None


def test_get_raises_on_bad_status(transport):
    transport.request.return_value = make_response(404, {"message": "Not Found"})
    api = GitHubAPI("https://api.github.com", transport=transport)

    with pytest.raises(ListError, match="404"):
        api.get(api.url("users/nobody"))


def test_get_raises_on_invalid_json(transport):
    resp = make_response(200)
    resp.json.side_effect = ValueError("Expecting value")
    transport.request.return_value = resp
    api = GitHubAPI("https://api.github.com", transport=transport)

    with pytest.raises(ListError, match="Cannot decode JSON"):
        api.get(api.url("users/x"))


def test_transport_error_is_masked(transport):
    transport.request.side_effect = requests.ConnectionError("refused for s3cr3t")
    api = GitHubAPI("https://api.github.com", transport=transport, secret="s3cr3t")

    with pytest.raises(ListError) as excinfo:
        api.get(api.url("users/x"))

    assert "s3cr3t" not in str(excinfo.value)
    assert "###" in str(excinfo.value)


def test_iterate_pages_follows_next_links(transport):
    transport.request.side_effect = [
        make_response(200, [1, 2], headers={"Link": '<https://api.github.com/p2>; rel="next"'}),
        make_response(200, [3], headers={}),
    ]
    api = GitHubAPI("https://api.github.com", transport=transport)

    pages = list(api.iterate_pages("https://api.github.com/p1"))

    assert pages == [[1, 2], [3]]
    urls = [call.args[1] for call in transport.request.call_args_list]
    assert urls == ["https://api.github.com/p1", "https://api.github.com/p2"]


def test_iterate_pages_rejects_non_array(transport):
    transport.request.return_value = make_response(200, {"message": "oops"})
    api = GitHubAPI("https://api.github.com", transport=transport)

    with pytest.raises(ListError, match="JSON array"):
        list(api.iterate_pages("https://api.github.com/p1"))
