"""
Git hosting: bare repository storage, smart-HTTP wire helpers and the
repository tree reader.
"""

from .protocol import (
    RefUpdate,
    parse_receive_commands,
    pkt_line,
    service_from_query,
    advertisement_preamble,
    decode_body,
    FLUSH_PKT,
    NO_CACHE_HEADERS,
    cache_forever_headers,
)
from .repository import RepositoryStore, GitOperationError, git_operation
from .tree_reader import TreeReader

__all__ = [
    "RefUpdate",
    "parse_receive_commands",
    "pkt_line",
    "service_from_query",
    "advertisement_preamble",
    "decode_body",
    "FLUSH_PKT",
    "NO_CACHE_HEADERS",
    "cache_forever_headers",
    "RepositoryStore",
    "GitOperationError",
    "git_operation",
    "TreeReader",
]
