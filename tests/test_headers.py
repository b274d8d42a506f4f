"""Tests for header blocks and status codes."""

import pytest

from http_hopper.headers.block import HeaderBlock, display_name, is_start_line
from http_hopper.headers.status_codes import (
    STATUS_CODES,
    reason_phrase,
    status_line,
    is_ok,
    is_redirect,
)


class TestStatusCodes:
    """Tests for the status code table."""

    def test_known_reasons(self):
        assert reason_phrase(200) == "OK"
        assert reason_phrase(302) == "Found"
        assert reason_phrase(505) == "HTTP Version Not Supported"
        assert len(STATUS_CODES) == 40

    def test_unknown_code_has_empty_reason(self):
        assert reason_phrase(299) == ""
        assert status_line(299) == "HTTP/1.1 299"

    def test_status_line(self):
        assert status_line(404) == "HTTP/1.1 404 Not Found"
        assert status_line(200, "HTTP/1.0") == "HTTP/1.0 200 OK"

    def test_ok_range_excludes_use_proxy(self):
        assert is_ok(200)
        assert is_ok(302)
        assert is_ok(399)
        assert not is_ok(305)
        assert not is_ok(199)
        assert not is_ok(400)
        assert not is_ok(500)

    def test_redirect_range(self):
        assert is_redirect(301)
        assert is_redirect(303)
        assert is_redirect(307)
        assert not is_redirect(305)
        assert not is_redirect(200)
        assert not is_redirect(404)


class TestHeaderParsing:
    """Tests for parsing raw header text."""

    def test_simple_response(self):
        block = HeaderBlock(
            "HTTP/1.1 200 OK\r\n"
            "Content-Type: text/html\r\n"
            "Content-Length: 12\r\n"
        )

        assert block.status_code == 200
        assert block["content-type"] == "text/html"
        assert block.get("Content-Length") == "12"
        assert block.previous is None

    def test_names_are_case_insensitive(self):
        block = HeaderBlock("HTTP/1.1 200 OK\r\nX-Custom-Header: Value\r\n")

        assert "x-custom-header" in block
        assert "X-CUSTOM-HEADER" in block
        assert block["X-Custom-Header"] == "Value"
        assert block.names() == ["x-custom-header"]

    def test_repeated_header_becomes_list(self):
        block = HeaderBlock(
            "HTTP/1.1 200 OK\r\n"
            "Set-Cookie: a=1\r\n"
            "Set-Cookie: b=2\r\n"
            "Set-Cookie: c=3\r\n"
        )

        assert block["set-cookie"] == ["a=1", "b=2", "c=3"]
        assert block.get_all("set-cookie") == ["a=1", "b=2", "c=3"]
        assert block.get_all("missing") == []

    def test_value_keeps_colons(self):
        block = HeaderBlock("HTTP/1.1 302 Found\r\nLocation: http://example.com:8080/x\r\n")

        assert block["location"] == "http://example.com:8080/x"

    def test_empty_value(self):
        block = HeaderBlock("HTTP/1.1 200 OK\r\nX-Empty:\r\n")

        assert block["x-empty"] == ""

    def test_line_without_colon_is_kept_with_empty_value(self):
        block = HeaderBlock("HTTP/1.1 200 OK\r\nGarbage Line\r\nServer: test\r\n")

        assert block["garbage line"] == ""
        assert block["server"] == "test"

    def test_status_line_without_reason(self):
        block = HeaderBlock("HTTP/1.1 299\r\n")

        assert block.status_code == 299

    def test_accepts_lf_only_line_endings(self):
        block, body = HeaderBlock.parse_document("HTTP/1.1 200 OK\nServer: x\n\nbody")

        assert block["server"] == "x"
        assert body == "body"

    def test_accepts_bytes(self):
        block = HeaderBlock(b"HTTP/1.1 404 Not Found\r\nServer: x\r\n")

        assert block.status_code == 404

    def test_accepts_line_list(self):
        block = HeaderBlock(["HTTP/1.1 201 Created", "Location: /item/1"])

        assert block.status_code == 201
        assert block["location"] == "/item/1"

    def test_accepts_mapping(self):
        block = HeaderBlock({"Accept": "text/html", "X-Multi": ["a", "b"]})

        assert block["accept"] == "text/html"
        assert block["x-multi"] == ["a", "b"]
        assert block.status_code is None

    def test_parse_returns_body(self):
        block = HeaderBlock()
        consumed_all, body = block.parse(
            "HTTP/1.1 200 OK\r\nContent-Type: text/plain\r\n\r\nline one\r\n\r\nline two",
            return_body=True,
        )

        assert consumed_all is False
        assert body == "line one\r\n\r\nline two"

    def test_parse_without_body_consumes_all(self):
        block = HeaderBlock()
        consumed_all, body = block.parse("HTTP/1.1 204 No Content\r\nServer: x\r\n\r\n", return_body=True)

        assert consumed_all is True
        assert body == ""

    def test_body_not_returned_unless_requested(self):
        block = HeaderBlock()
        consumed_all, body = block.parse("HTTP/1.1 200 OK\r\n\r\npayload")

        assert consumed_all is False
        assert body == ""


class TestStackedBlocks:
    """Tests for several responses in one text."""

    RAW = (
        "HTTP/1.1 301 Moved Permanently\r\n"
        "Location: http://example.com/b\r\n"
        "\r\n"
        "HTTP/1.1 302 Found\r\n"
        "Location: http://example.com/c\r\n"
        "\r\n"
        "HTTP/1.1 200 OK\r\n"
        "Content-Type: text/html\r\n"
        "\r\n"
        "<html></html>"
    )

    def test_newest_block_is_outermost(self):
        block, body = HeaderBlock.parse_document(self.RAW)

        assert block.status_code == 200
        assert block.previous.status_code == 302
        assert block.previous.previous.status_code == 301
        assert block.previous.previous.previous is None
        assert body == "<html></html>"

    def test_chain_is_oldest_first(self):
        block, _ = HeaderBlock.parse_document(self.RAW)

        assert [b.status_code for b in block.chain()] == [301, 302, 200]
        assert block.depth == 3
        assert block.oldest().status_code == 301

    def test_headers_stay_with_their_block(self):
        block, _ = HeaderBlock.parse_document(self.RAW)

        assert "location" not in block
        assert block.previous["location"] == "http://example.com/c"

    def test_interim_continue(self):
        block, body = HeaderBlock.parse_document(
            "HTTP/1.1 100 Continue\r\n\r\nHTTP/1.1 200 OK\r\nServer: x\r\n\r\ndone"
        )

        assert block.status_code == 200
        assert block.previous.status_code == 100
        assert body == "done"

    def test_extra_blank_lines_between_blocks(self):
        block, body = HeaderBlock.parse_document(
            "HTTP/1.1 302 Found\r\n\r\n\r\n\r\nHTTP/1.1 200 OK\r\n\r\n"
        )

        assert block.depth == 2
        assert body == ""

    def test_adding_status_pushes_current_fields(self):
        block = HeaderBlock()
        block.add(0, 302)
        block.add("location", "/next")
        block.add(0, "200")

        assert block.status_code == 200
        assert block.previous.status_code == 302
        assert block.previous["location"] == "/next"
        assert "location" not in block


class TestHeaderMutation:
    """Tests for add/override/erase semantics."""

    def test_add_keeps_existing_values(self):
        block = HeaderBlock()
        block.add("X-Test", "one")
        block.add("x-test", "two")

        assert block["x-test"] == ["one", "two"]

    def test_cookie_values_are_merged(self):
        block = HeaderBlock()
        block.add("cookie", "a=1; b=2")
        block.add("cookie", "b=3; c=4")

        assert block["cookie"] == "a=1; b=3; c=4"

    def test_override_walks_whole_chain(self):
        block, _ = HeaderBlock.parse_document(
            "HTTP/1.1 302 Found\r\nServer: old\r\n\r\nHTTP/1.1 200 OK\r\nServer: new\r\n\r\n"
        )
        block.override("server", "patched")

        assert block["server"] == "patched"
        assert block.previous["server"] == "patched"

    def test_erase_walks_whole_chain(self):
        block, _ = HeaderBlock.parse_document(
            "HTTP/1.1 302 Found\r\nVia: a\r\n\r\nHTTP/1.1 200 OK\r\nVia: b\r\n\r\n"
        )
        block.erase("via")

        assert "via" not in block
        assert "via" not in block.previous

        block.add("via", "c")

        assert block["via"] == "c"
        assert "via" not in block.previous

    def test_item_assignment_is_local(self):
        block, _ = HeaderBlock.parse_document(
            "HTTP/1.1 302 Found\r\nServer: old\r\n\r\nHTTP/1.1 200 OK\r\n\r\n"
        )
        block["server"] = "new"
        del block.previous["server"]

        assert block["server"] == "new"
        assert "server" not in block.previous

    def test_status_key_aliases(self):
        block = HeaderBlock()
        block["0"] = 404

        assert block[0] == 404
        assert block.get(None) == 404
        assert block.get_status_code() == 404

    def test_set_status_code(self):
        block = HeaderBlock()
        block.set_status_code(503)

        assert block.status_code == 503
        assert not block.ok()

    def test_copy_is_deep(self):
        block, _ = HeaderBlock.parse_document(
            "HTTP/1.1 302 Found\r\nX-A: 1\r\nX-A: 2\r\n\r\nHTTP/1.1 200 OK\r\n\r\n"
        )
        clone = block.copy()
        clone.previous["x-a"].append("3")
        clone["x-new"] = "y"

        assert block.previous["x-a"] == ["1", "2"]
        assert "x-new" not in block
        assert clone.previous.status_code == 302

    def test_invalid_key_type(self):
        block = HeaderBlock()

        with pytest.raises(TypeError):
            block.add(3.5, "x")


class TestAttachPrevious:
    """Tests for linking earlier hops."""

    def test_attach_under_oldest(self):
        first = HeaderBlock("HTTP/1.1 301 Moved Permanently\r\n")
        second, _ = HeaderBlock.parse_document("HTTP/1.1 100 Continue\r\n\r\nHTTP/1.1 200 OK\r\n\r\n")
        second.attach_previous(first)

        assert [b.status_code for b in second.chain()] == [301, 100, 200]

    def test_attach_none_is_noop(self):
        block = HeaderBlock("HTTP/1.1 200 OK\r\n")
        block.attach_previous(None)

        assert block.previous is None

    def test_cycle_rejected(self):
        first = HeaderBlock("HTTP/1.1 302 Found\r\n")
        second = HeaderBlock("HTTP/1.1 200 OK\r\n")
        second.attach_previous(first)

        with pytest.raises(ValueError):
            first.attach_previous(second)
        with pytest.raises(ValueError):
            second.attach_previous(second)


class TestSerialization:
    """Tests for rendering blocks back to text."""

    def test_to_string(self):
        block = HeaderBlock()
        block.set_status_code(200)
        block.add("content-type", "text/plain")
        block.add("x-multi", "a")
        block.add("x-multi", "b")

        assert block.to_string() == (
            "HTTP/1.1 200 OK\r\n"
            "Content-Type: text/plain\r\n"
            "X-Multi: a\r\n"
            "X-Multi: b\r\n"
        )

    def test_chain_rendered_oldest_first(self):
        block, _ = HeaderBlock.parse_document(
            "HTTP/1.1 302 Found\r\nLocation: /b\r\n\r\nHTTP/1.1 200 OK\r\n\r\n"
        )

        assert block.to_string() == (
            "HTTP/1.1 302 Found\r\nLocation: /b\r\n\r\nHTTP/1.1 200 OK\r\n"
        )
        assert block.to_string(include_previous=False) == "HTTP/1.1 200 OK\r\n"

    def test_round_trip(self):
        original, _ = HeaderBlock.parse_document(
            "HTTP/1.1 301 Moved Permanently\r\nLocation: /a\r\n\r\n"
            "HTTP/1.1 200 OK\r\nSet-Cookie: a=1\r\nSet-Cookie: b=2\r\n\r\n"
        )
        reparsed = HeaderBlock(original.to_string())

        assert reparsed == original

    def test_display_name(self):
        assert display_name("content-type") == "Content-Type"
        assert display_name("x-forwarded-for") == "X-Forwarded-For"
        assert display_name("etag") == "Etag"

    def test_header_lines(self):
        block = HeaderBlock({"accept": "*/*", "via": ["a", "b"]})

        assert block.header_lines() == [("Accept", "*/*"), ("Via", "a"), ("Via", "b")]

    def test_str_matches_to_string(self):
        block = HeaderBlock("HTTP/1.1 404 Not Found\r\nServer: x\r\n")

        assert str(block) == block.to_string()


class TestRequestLine:
    """Tests for request-shaped blocks."""

    def test_parse_request(self):
        block, body = HeaderBlock.parse_document(
            "POST /submit?x=1 HTTP/1.1\r\nHost: example.com\r\n\r\na=1"
        )

        assert block.method == "POST"
        assert block.request_target == "/submit?x=1"
        assert block.status_code is None
        assert body == "a=1"

    def test_request_like_line_inside_block_does_not_split(self):
        block = HeaderBlock("HTTP/1.1 200 OK\r\nServer: x\r\nFoo bar HTTP/1.0\r\nVia: y\r\n")

        assert block.previous is None
        assert block.status_code == 200
        assert block["foo bar http/1.0"] == ""
        assert block["via"] == "y"

    def test_set_request_line(self):
        block = HeaderBlock()
        block.set_request_line("get", "/index.html")
        block["host"] = "example.com"

        assert block.method == "GET"
        assert block.start_line() == "GET /index.html HTTP/1.1"
        assert block.to_string() == "GET /index.html HTTP/1.1\r\nHost: example.com\r\n"

    def test_is_start_line(self):
        assert is_start_line("HTTP/1.1 200 OK")
        assert is_start_line("http/1.0 404 Not Found")
        assert is_start_line("GET / HTTP/1.1")
        assert not is_start_line("Content-Type: text/html")
        assert not is_start_line("hello world")


class TestResponseCookies:
    """Tests for cookie access on blocks."""

    def test_get_set_cookies(self):
        block = HeaderBlock(
            "HTTP/1.1 200 OK\r\n"
            "Set-Cookie: sid=abc; Path=/; HttpOnly\r\n"
            "Set-Cookie: theme=dark; Max-Age=3600\r\n"
        )
        cookies = block.get_set_cookies(now=1000.0)

        assert [c.name for c in cookies] == ["sid", "theme"]
        assert cookies[0].path == "/"
        assert cookies[0].http_only
        assert cookies[1].expires == 4600.0

    def test_get_cookies(self):
        block = HeaderBlock({"cookie": "a=1; b=2"})

        assert [(c.name, c.value) for c in block.get_cookies()] == [("a", "1"), ("b", "2")]

    def test_create_cookie_response_headers_skips_expired(self):
        block = HeaderBlock(
            "HTTP/1.1 200 OK\r\n"
            "Set-Cookie: live=yes\r\n"
            "Set-Cookie: gone=no; Max-Age=0\r\n"
            "Set-Cookie: later=ok; Max-Age=60\r\n"
        )
        request = block.create_cookie_response_headers(now=1000.0)

        assert request["cookie"] == "live=yes; later=ok"
        assert request.status_code is None

    def test_create_cookie_response_headers_empty(self):
        block = HeaderBlock("HTTP/1.1 200 OK\r\n")

        assert len(block.create_cookie_response_headers()) == 0
