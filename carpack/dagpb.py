"""
Minimal protobuf wire encoding for DAG-PB nodes carrying UnixFS file data.

Only the subset needed for file stem nodes is supported, with byte output
identical to @ipld/dag-pb + ipfs-unixfs:

PBNode
- 2: Links (repeated PBLink, length-delimited), written first
- 1: Data (bytes, UnixFS Data message)

PBLink
- 1: Hash (bytes, binary CID)
- 2: Name (string, always written, empty here)
- 3: Tsize (varint, cumulative encoded size of the subtree)

UnixFS Data
- 1: Type (varint, 2 = File)
- 2: Data (bytes, absent on stems)
- 3: filesize (varint, sum of blocksizes + len(Data))
- 4: blocksizes (varint, repeated and not packed)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Tuple

from multiformats import CID, varint

from .constants import CID_BASE, UNIXFS_TYPE_FILE
from .errors import CarFormatError


WIRE_VARINT = 0
WIRE_LEN = 2


def _key(field_no: int, wire_type: int) -> bytes:
    return varint.encode((field_no << 3) | wire_type)


def _field_varint(field_no: int, value: int) -> bytes:
    return _key(field_no, WIRE_VARINT) + varint.encode(value)


def _field_bytes(field_no: int, payload: bytes) -> bytes:
    return _key(field_no, WIRE_LEN) + varint.encode(len(payload)) + payload


@dataclass
class PBLink:
    cid: CID
    tsize: int
    name: str = ""


@dataclass
class PBNode:
    data: Optional[bytes] = None
    links: List[PBLink] = field(default_factory=list)


@dataclass
class UnixFSFile:
    blocksizes: List[int] = field(default_factory=list)
    data: Optional[bytes] = None

    @property
    def filesize(self) -> int:
        return sum(self.blocksizes) + len(self.data or b"")


def encode_unixfs_file(blocksizes: Sequence[int], data: Optional[bytes] = None) -> bytes:
    out = bytearray(_field_varint(1, UNIXFS_TYPE_FILE))
    if data:
        out += _field_bytes(2, data)
    out += _field_varint(3, sum(blocksizes) + len(data or b""))
    for bs in blocksizes:
        out += _field_varint(4, bs)
    return bytes(out)


def encode_link(link: PBLink) -> bytes:
    return (
        _field_bytes(1, bytes(link.cid))
        + _field_bytes(2, link.name.encode("utf-8"))
        + _field_varint(3, link.tsize)
    )


def encode_node(node: PBNode) -> bytes:
    out = bytearray()
    for link in node.links:
        out += _field_bytes(2, encode_link(link))
    if node.data is not None:
        out += _field_bytes(1, node.data)
    return bytes(out)


def encode_file_stem(children: Iterable[Tuple[CID, int, int]]) -> bytes:
    """Encode a UnixFS file stem from (cid, logical_size, encoded_size) children."""
    children = list(children)
    unixfs = encode_unixfs_file([logical for _, logical, _ in children])
    links = [PBLink(cid=cid, tsize=encoded) for cid, _, encoded in children]
    return encode_node(PBNode(data=unixfs, links=links))


# -------- Decoding (our own stems only) --------

def decode_cid(raw: bytes) -> CID:
    """Decode a binary CID, rendered in the same base the encoder uses."""
    try:
        cid = CID.decode(raw)
    except (ValueError, KeyError, IndexError) as exc:
        raise CarFormatError(f"bad CID: {exc}") from exc
    if cid.version == 0:
        return cid
    return cid.set(base=CID_BASE)


def read_varint(view: memoryview, pos: int) -> Tuple[int, int]:
    """Decode an unsigned varint at ``pos``; returns (value, new_pos)."""
    try:
        value, n, _ = varint.decode_raw(view[pos:])
    except (ValueError, IndexError) as exc:
        raise CarFormatError(f"bad varint at offset {pos}: {exc}") from exc
    return value, pos + n


def _iter_fields(data: bytes) -> Iterable[Tuple[int, int, object]]:
    view = memoryview(data)
    pos = 0
    while pos < len(view):
        key, pos = read_varint(view, pos)
        field_no, wire_type = key >> 3, key & 0x7
        if wire_type == WIRE_VARINT:
            value, pos = read_varint(view, pos)
            yield field_no, wire_type, value
        elif wire_type == WIRE_LEN:
            length, pos = read_varint(view, pos)
            if pos + length > len(view):
                raise CarFormatError("dag-pb: truncated length-delimited field")
            yield field_no, wire_type, bytes(view[pos : pos + length])
            pos += length
        else:
            raise CarFormatError(f"dag-pb: unsupported wire type {wire_type}")


def decode_link(data: bytes) -> PBLink:
    cid: Optional[CID] = None
    name = ""
    tsize = 0
    for field_no, _wt, value in _iter_fields(data):
        if field_no == 1:
            cid = decode_cid(value)  # type: ignore[arg-type]
        elif field_no == 2:
            name = value.decode("utf-8")  # type: ignore[union-attr]
        elif field_no == 3:
            tsize = value  # type: ignore[assignment]
    if cid is None:
        raise CarFormatError("dag-pb: link without Hash")
    return PBLink(cid=cid, tsize=tsize, name=name)


def decode_node(data: bytes) -> PBNode:
    node = PBNode()
    for field_no, _wt, value in _iter_fields(data):
        if field_no == 2:
            node.links.append(decode_link(value))  # type: ignore[arg-type]
        elif field_no == 1:
            node.data = value  # type: ignore[assignment]
    return node


def decode_unixfs_file(data: bytes) -> UnixFSFile:
    out = UnixFSFile()
    ftype = None
    for field_no, _wt, value in _iter_fields(data):
        if field_no == 1:
            ftype = value
        elif field_no == 2:
            out.data = value  # type: ignore[assignment]
        elif field_no == 4:
            out.blocksizes.append(value)  # type: ignore[arg-type]
    if ftype != UNIXFS_TYPE_FILE:
        raise CarFormatError(f"unixfs: unsupported node type {ftype}")
    return out
