"""
CARv2 "multihash index sorted" (multicodec 0x0401), specialised to a single
sha2-256 bucket with one digest width.

Layout
- varint(0x0401)
- u32 number of multihash-code buckets (1)
- u64 multihash code (0x12)
- u32 number of digest widths within the code (1)
- u32 record width (40)
- u64 total record bytes (40 * n)
- n records: digest[32] || u64 offset, ascending by digest

All fixed-width integers are little-endian.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Iterable, Iterator, List

from multiformats import varint

from .constants import (
    INDEX_BUCKET_COUNT,
    INDEX_ENTRY_SIZE,
    INDEX_WIDTH_COUNT,
    MULTIHASH_INDEX_SORTED_CODE,
    SHA2_256_CODE,
    SHA2_256_DIGEST_SIZE,
)
from .dagpb import read_varint
from .errors import CarFormatError, MalformedIndexError


_BUCKET_HDR = struct.Struct("<IQIIQ")
_ENTRY = struct.Struct(f"<{SHA2_256_DIGEST_SIZE}sQ")


@dataclass(frozen=True)
class IndexEntry:
    digest: bytes
    offset: int


def index_header(entry_count: int) -> bytes:
    return varint.encode(MULTIHASH_INDEX_SORTED_CODE) + _BUCKET_HDR.pack(
        INDEX_BUCKET_COUNT,
        SHA2_256_CODE,
        INDEX_WIDTH_COUNT,
        INDEX_ENTRY_SIZE,
        INDEX_ENTRY_SIZE * entry_count,
    )


def build_multihash_index_sorted(entries: Iterable[IndexEntry]) -> bytes:
    entries = list(entries)
    if not entries:
        raise MalformedIndexError("cannot build index from 0 entries")
    for e in entries:
        if len(e.digest) != SHA2_256_DIGEST_SIZE:
            raise MalformedIndexError(f"unexpected digest length: {len(e.digest)}")
    ordered = sorted(entries, key=lambda e: bytes(e.digest))
    out = bytearray(index_header(len(ordered)))
    for e in ordered:
        out += _ENTRY.pack(bytes(e.digest), e.offset)
    return bytes(out)


def iter_index_entries(data: bytes) -> Iterator[IndexEntry]:
    """Parse an index produced by :func:`build_multihash_index_sorted`."""
    view = memoryview(data)
    codec, pos = read_varint(view, 0)
    if codec != MULTIHASH_INDEX_SORTED_CODE:
        raise CarFormatError(f"unsupported index codec 0x{codec:x}")
    if len(view) - pos < _BUCKET_HDR.size:
        raise CarFormatError("index header is truncated")
    buckets, code, widths, width, total = _BUCKET_HDR.unpack_from(view, pos)
    pos += _BUCKET_HDR.size
    if (buckets, code, widths, width) != (
        INDEX_BUCKET_COUNT,
        SHA2_256_CODE,
        INDEX_WIDTH_COUNT,
        INDEX_ENTRY_SIZE,
    ):
        raise CarFormatError("index is not a single sha2-256 bucket")
    if total % width or pos + total != len(view):
        raise CarFormatError("index length does not match its records")
    for off in range(pos, pos + total, width):
        digest, offset = _ENTRY.unpack_from(view, off)
        yield IndexEntry(digest=digest, offset=offset)


def entries_from_offsets(offsets: Iterable[tuple]) -> List[IndexEntry]:
    """Build index entries from (CID, offset) pairs."""
    return [IndexEntry(digest=cid.raw_digest, offset=off) for cid, off in offsets]
