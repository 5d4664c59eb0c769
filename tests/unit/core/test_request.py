"""Тесты для RequestSpec builder."""

import base64
import dataclasses
import os

import pytest

from src.http_fetch.core.exceptions import ValidationError
from src.http_fetch.core.options import DEFAULT_USER_AGENT, REDIR_POST_ALL, Opt
from src.http_fetch.core.request import RequestSpec

# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Immutability
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def test_default_spec_is_empty():
    spec = RequestSpec.create()
    assert spec.url is None
    assert spec.method is None
    assert dict(spec.headers) == {}
    assert dict(spec.options) == {}
    assert spec.retry == 0
    assert spec.cookie_jar_path is None


def test_with_header_does_not_mutate_receiver():
    a = RequestSpec.create()
    b = a.with_header("H", "1")
    assert dict(a.headers) == {}
    assert b.headers["H"] == ("1",)


def test_with_opt_does_not_mutate_receiver():
    a = RequestSpec.create().with_opt(Opt.TIMEOUT, 5)
    b = a.with_opt(Opt.TIMEOUT, 10)
    assert a.options[Opt.TIMEOUT] == 5
    assert b.options[Opt.TIMEOUT] == 10


def test_fields_cannot_be_assigned():
    spec = RequestSpec.create()
    with pytest.raises(dataclasses.FrozenInstanceError):
        spec.url = "https://example.com"


def test_maps_are_read_only():
    spec = RequestSpec.create().with_header("X", "a").with_opt(Opt.TIMEOUT, 1)
    with pytest.raises(TypeError):
        spec.headers["Y"] = ("b",)
    with pytest.raises(TypeError):
        spec.options[Opt.PROXY] = "http://h:1"


def test_negative_retry_rejected():
    with pytest.raises(ValidationError):
        RequestSpec(retry=-1)
    with pytest.raises(ValidationError):
        RequestSpec.create().with_retry(-1)

# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Options
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def test_with_opts_merge_overwrites():
    spec = RequestSpec.create().with_opts({Opt.TIMEOUT: 1, Opt.MAX_REDIRS: 3})
    spec = spec.with_opts({Opt.TIMEOUT: 2})
    assert spec.options == {Opt.TIMEOUT: 2, Opt.MAX_REDIRS: 3}


def test_with_opt_accepts_string_ids():
    spec = RequestSpec.create().with_opt("timeout", 3)
    assert spec.options[Opt.TIMEOUT] == 3


def test_unknown_option_rejected():
    with pytest.raises(ValidationError):
        RequestSpec.create().with_opt("no_such_option", 1)


def test_with_timeout_sets_connect_and_total():
    spec = RequestSpec.create().with_timeout(7)
    assert spec.options[Opt.CONNECT_TIMEOUT] == 7
    assert spec.options[Opt.TIMEOUT] == 7


def test_with_auto_redirect():
    assert RequestSpec.create().with_auto_redirect().options[Opt.FOLLOW_LOCATION] is True
    assert RequestSpec.create().with_auto_redirect(False).options[Opt.FOLLOW_LOCATION] is False


def test_with_user_agent_default():
    assert RequestSpec.create().with_user_agent().options[Opt.USER_AGENT] == DEFAULT_USER_AGENT
    assert RequestSpec.create().with_user_agent("bot/1").options[Opt.USER_AGENT] == "bot/1"


def test_with_referer():
    assert RequestSpec.create().with_referer("https://a.example").options[Opt.REFERER] == "https://a.example"

# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Headers
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def test_with_header_appends_in_order():
    spec = RequestSpec.create().with_header("X", "a").with_header("X", "b")
    assert spec.headers["X"] == ("a", "b")


def test_with_headers_replaces():
    spec = RequestSpec.create().with_header("Old", "1").with_headers({"New": "2"})
    assert dict(spec.headers) == {"New": ("2",)}


def test_with_added_headers_appends():
    spec = RequestSpec.create().with_header("X", "a").with_added_headers({"X": ["b", "c"], "Y": "d"})
    assert spec.headers["X"] == ("a", "b", "c")
    assert spec.headers["Y"] == ("d",)


def test_with_added_header_text():
    spec = RequestSpec.create().with_header("X", "a")
    spec = spec.with_added_header_text("X: b\nAccept: text/html\n")
    assert spec.headers["X"] == ("a", "b")
    assert spec.headers["Accept"] == ("text/html",)


def test_with_header_text_replaces():
    spec = RequestSpec.create().with_header("X", "a").with_header_text("Y: 1\r\nY: 2\r\n")
    assert dict(spec.headers) == {"Y": ("1", "2")}


def test_header_lines():
    spec = RequestSpec.create().with_header("X", "a").with_header("X", "b").with_header("Y", "c")
    assert spec.header_lines() == ["X: a", "X: b", "Y: c"]


def test_with_auth_basic():
    spec = RequestSpec.create().with_auth("user", "pass")
    expected = base64.b64encode(b"user:pass").decode()
    assert spec.headers["Authorization"] == (f"Basic {expected}",)


def test_with_ajax():
    assert RequestSpec.create().with_ajax().headers["X-Requested-With"] == ("XMLHttpRequest",)

# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Validation
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def test_with_url_valid():
    spec = RequestSpec.create().with_url("https://example.com/path?q=1")
    assert spec.url == "https://example.com/path?q=1"


@pytest.mark.parametrize("url", [
    "http://user:pw@example.com:8080/a#frag",
    "https://[::1]:8443/",
    "ftp://files.example.com",
])
def test_with_url_accepts_absolute_urls(url):
    assert RequestSpec.create().with_url(url).url == url


@pytest.mark.parametrize("url", ["not a url", "/relative/path", "example.com", "", "http://"])
def test_with_url_rejects_invalid(url):
    with pytest.raises(ValidationError):
        RequestSpec.create().with_url(url)


def test_with_method_normalizes():
    assert RequestSpec.create().with_method("get").method == "GET"
    assert RequestSpec.create().with_method("Patch").method == "PATCH"


def test_with_method_rejects_unknown():
    with pytest.raises(ValidationError):
        RequestSpec.create().with_method("FOO")


def test_with_proxy_socks5():
    spec = RequestSpec.create().with_proxy("socks5", "h", 1080)
    assert spec.options[Opt.PROXY] == "socks5://h:1080"
    assert spec.options[Opt.HTTP_PROXY_TUNNEL] is False


def test_with_proxy_rejects_protocol():
    with pytest.raises(ValidationError):
        RequestSpec.create().with_proxy("ftp", "h", 80)

# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Body
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def test_post_json():
    spec = RequestSpec.create().post_json('{"a":1}')
    assert spec.method == "POST"
    assert spec.body == '{"a":1}'
    assert spec.headers["Content-Type"] == ("application/json",)
    assert spec.headers["Content-Length"] == ("7",)


def test_post_json_counts_utf8_bytes():
    spec = RequestSpec.create().post_json('{"a":"é"}')
    assert spec.headers["Content-Length"] == ("10",)


def test_post_json_replaces_content_type_only():
    spec = (RequestSpec.create()
            .with_header("content-type", "text/plain")
            .with_header("X-Keep", "1")
            .post_json("{}"))
    assert "content-type" not in spec.headers
    assert spec.headers["Content-Type"] == ("application/json",)
    assert spec.headers["X-Keep"] == ("1",)


def test_post_data():
    spec = RequestSpec.create().post_data({"a": 1, "b": "x y"})
    assert spec.body == "a=1&b=x+y"
    assert spec.options[Opt.POST_REDIR] == REDIR_POST_ALL


def test_with_data_string_and_map():
    assert RequestSpec.create().with_data("raw").body == "raw"
    assert RequestSpec.create().with_data({"k": ["a", "b"]}).body == "k%5B0%5D=a&k%5B1%5D=b"


def test_with_data_none_removes_body():
    spec = RequestSpec.create().with_data("raw").with_data(None)
    assert spec.body is None
    assert Opt.POST_FIELDS not in spec.options


@pytest.mark.parametrize("data", [42, 1.5, b"bytes", object()])
def test_with_data_rejects_other_types(data):
    with pytest.raises(ValidationError):
        RequestSpec.create().with_data(data)

# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Cookies
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def test_with_cookie_file_creates_directory(tmp_path):
    path = tmp_path / "nested" / "jar.txt"
    spec = RequestSpec.create().with_cookie_file(str(path))
    assert spec.cookie_jar_path == str(path)
    assert path.parent.is_dir()


@pytest.mark.skipif(os.name != "posix" or os.geteuid() == 0, reason="needs non-root POSIX permissions")
def test_with_cookie_file_unwritable_directory(tmp_path):
    locked = tmp_path / "locked"
    locked.mkdir()
    locked.chmod(0o500)
    try:
        with pytest.raises(ValidationError):
            RequestSpec.create().with_cookie_file(str(locked / "jar.txt"))
    finally:
        locked.chmod(0o700)


def test_with_cookie_file_parent_is_a_file(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("x")
    with pytest.raises(ValidationError):
        RequestSpec.create().with_cookie_file(str(blocker / "jar.txt"))
