"""
Git smart-HTTP wire helpers

pkt-line framing, the service advertisement preamble and the ref-update
command list that opens a receive-pack request.
"""

import gzip
import time
import zlib
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional

from pushdeploy.utils.exceptions import ValidationException

FLUSH_PKT = b"0000"
ZERO_SHA = "0" * 40
SERVICES = ("upload-pack", "receive-pack")

NO_CACHE_HEADERS = {
    "Expires": "Fri, 01 Jan 1980 00:00:00 GMT",
    "Pragma": "no-cache",
    "Cache-Control": "no-cache, max-age=0, must-revalidate",
}


def cache_forever_headers() -> Dict[str, str]:
    now = time.time()
    return {
        "Date": time.strftime("%a, %d %b %Y %H:%M:%S GMT", time.gmtime(now)),
        "Expires": time.strftime("%a, %d %b %Y %H:%M:%S GMT", time.gmtime(now + 31536000)),
        "Cache-Control": "public, max-age=31536000",
    }


def pkt_line(payload) -> bytes:
    """Frame one pkt-line: 4 hex digits of total length, then the payload"""
    if isinstance(payload, str):
        payload = payload.encode("utf-8")
    return f"{len(payload) + 4:04x}".encode("ascii") + payload


def iter_pkt_lines(data: bytes) -> Iterator[Optional[bytes]]:
    """
    Yield pkt-line payloads from ``data``; a flush-pkt yields None

    Stops at the end of the framed section (a pack stream may follow).
    """
    pos = 0
    while pos + 4 <= len(data):
        try:
            length = int(data[pos:pos + 4], 16)
        except ValueError:
            return
        if length == 0:
            yield None
            pos += 4
            continue
        if length < 4 or pos + length > len(data):
            return
        yield data[pos + 4:pos + length]
        pos += length


def service_from_query(service: Optional[str]) -> Optional[str]:
    """'git-upload-pack' -> 'upload-pack'; anything unknown -> None"""
    if not service or not service.startswith("git-"):
        return None
    name = service[4:]
    return name if name in SERVICES else None


def advertisement_preamble(service: str) -> bytes:
    return pkt_line(f"# service=git-{service}\n") + FLUSH_PKT


def decode_body(body: bytes, content_encoding: Optional[str]) -> bytes:
    """Undo the request Content-Encoding git clients apply to large bodies"""
    if not content_encoding or content_encoding.lower() == "identity":
        return body
    if content_encoding.lower() in ("gzip", "x-gzip"):
        try:
            return gzip.decompress(body)
        except (OSError, EOFError, zlib.error) as e:
            raise ValidationException(f"Malformed gzip request body: {e}")
    raise ValidationException(f"Unsupported Content-Encoding: {content_encoding}")


@dataclass(frozen=True)
class RefUpdate:
    """One '<old> <new> <ref>' command of a push"""
    old_sha: str
    new_sha: str
    ref: str

    @property
    def is_delete(self) -> bool:
        return self.new_sha == ZERO_SHA

    @property
    def is_create(self) -> bool:
        return self.old_sha == ZERO_SHA

    @property
    def branch(self) -> Optional[str]:
        if self.ref.startswith("refs/heads/"):
            return self.ref[len("refs/heads/"):]
        return None


def parse_receive_commands(body: bytes) -> List[RefUpdate]:
    """
    Parse the command list at the start of a receive-pack request

    The first command carries the capability list after a NUL byte. A
    push certificate block, if any, is skipped.
    """
    updates = []
    in_cert = False
    for payload in iter_pkt_lines(body):
        if payload is None:
            break
        line = payload.split(b"\0", 1)[0].rstrip(b"\n").decode("utf-8", errors="replace")
        if line.startswith("push-cert"):
            in_cert = True
            continue
        if in_cert:
            if line == "push-cert-end":
                in_cert = False
            continue
        if line.startswith("shallow "):
            continue
        parts = line.split(" ", 2)
        if len(parts) != 3 or len(parts[0]) != len(parts[1]):
            continue
        updates.append(RefUpdate(old_sha=parts[0], new_sha=parts[1], ref=parts[2]))
    return updates
