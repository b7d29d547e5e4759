"""Tests for the git smart-HTTP wire helpers."""

import gzip

import pytest

from pushdeploy.core.git.protocol import (
    FLUSH_PKT,
    ZERO_SHA,
    advertisement_preamble,
    cache_forever_headers,
    decode_body,
    iter_pkt_lines,
    parse_receive_commands,
    pkt_line,
    service_from_query,
)
from pushdeploy.utils.exceptions import ValidationException

OLD = "a" * 40
NEW = "b" * 40


class TestPktLine:

    def test_length_prefix_counts_itself(self):
        assert pkt_line("hello\n") == b"000ahello\n"

    def test_accepts_bytes(self):
        assert pkt_line(b"x") == b"0005x"

    def test_iter_yields_payloads_and_flush(self):
        data = pkt_line("one\n") + pkt_line("two\n") + FLUSH_PKT + b"PACK..."
        assert list(iter_pkt_lines(data))[:3] == [b"one\n", b"two\n", None]

    def test_iter_stops_on_garbage(self):
        assert list(iter_pkt_lines(b"zzzz")) == []

    def test_iter_stops_on_truncated_line(self):
        assert list(iter_pkt_lines(b"0010abc")) == []


class TestAdvertisement:

    def test_preamble(self):
        assert advertisement_preamble("upload-pack") == b"001e# service=git-upload-pack\n0000"

    @pytest.mark.parametrize("query,expected", [
        ("git-upload-pack", "upload-pack"),
        ("git-receive-pack", "receive-pack"),
        ("git-archive", None),
        ("upload-pack", None),
        (None, None),
    ])
    def test_service_from_query(self, query, expected):
        assert service_from_query(query) == expected

    def test_cache_forever_headers(self):
        headers = cache_forever_headers()
        assert headers["Cache-Control"] == "public, max-age=31536000"
        assert "Expires" in headers and "Date" in headers


class TestDecodeBody:

    def test_identity(self):
        assert decode_body(b"0000", None) == b"0000"

    def test_gzip(self):
        assert decode_body(gzip.compress(b"payload"), "gzip") == b"payload"

    def test_broken_gzip(self):
        with pytest.raises(ValidationException):
            decode_body(b"definitely not gzip", "gzip")

    def test_unknown_encoding(self):
        with pytest.raises(ValidationException):
            decode_body(b"x", "br")


class TestReceiveCommands:

    def test_first_command_carries_capabilities(self):
        body = (
            pkt_line(f"{OLD} {NEW} refs/heads/master\0report-status side-band-64k agent=git/2.43\n")
            + pkt_line(f"{ZERO_SHA} {NEW} refs/heads/feature\n")
            + FLUSH_PKT
            + b"PACK\x00\x00\x00\x02"
        )
        updates = parse_receive_commands(body)

        assert [u.ref for u in updates] == ["refs/heads/master", "refs/heads/feature"]
        assert updates[0].branch == "master"
        assert updates[1].is_create
        assert not updates[0].is_create

    def test_delete_and_tag(self):
        body = (
            pkt_line(f"{OLD} {ZERO_SHA} refs/heads/old\n")
            + pkt_line(f"{ZERO_SHA} {NEW} refs/tags/v1\n")
            + FLUSH_PKT
        )
        delete, tag = parse_receive_commands(body)

        assert delete.is_delete
        assert tag.branch is None

    def test_push_certificate_is_skipped(self):
        body = (
            pkt_line("push-cert\0report-status\n")
            + pkt_line("certificate version 0.1\n")
            + pkt_line(f"{OLD} {NEW} refs/heads/master\n")
            + pkt_line("push-cert-end\n")
            + pkt_line(f"{OLD} {NEW} refs/heads/master\n")
            + FLUSH_PKT
        )
        updates = parse_receive_commands(body)

        assert len(updates) == 1
        assert updates[0].new_sha == NEW

    def test_shallow_lines_are_ignored(self):
        body = pkt_line(f"shallow {OLD}\n") + pkt_line(f"{OLD} {NEW} refs/heads/master\n") + FLUSH_PKT
        assert len(parse_receive_commands(body)) == 1

    def test_flush_only(self):
        assert parse_receive_commands(FLUSH_PKT) == []
