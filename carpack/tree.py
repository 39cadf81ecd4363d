"""
Balanced UnixFS file DAG over raw leaf chunks.

Level 0 is the chunk list. Each following level packs the previous level's
links, left to right, into buckets of at most ``max_links`` and turns every
bucket into one dag-pb stem. Construction stops when a single link remains;
that link's CID is the root.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Sequence

from multiformats import CID, multihash

from .chunker import Chunk
from .constants import CID_BASE, CODEC_DAG_PB, HASH_FN, MAX_LINKS
from .dagpb import encode_file_stem
from .errors import StructuralError


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Link:
    cid: CID
    logical_size: int  # bytes of file content reachable through the link
    encoded_size: int  # serialized size of the whole subtree


@dataclass
class TreeResult:
    # CID string -> block; insertion order: leaves in chunk order, then stems level by level
    nodes: Dict[str, bytes]
    root: CID
    # number of stems created at each level above the leaves
    stem_levels: List[int] = field(default_factory=list)

    @property
    def depth(self) -> int:
        return len(self.stem_levels)


def dag_pb_cid(block: bytes) -> CID:
    return CID(CID_BASE, 1, CODEC_DAG_PB, multihash.digest(block, HASH_FN))


def group_links(links: Sequence[Link], max_links: int) -> List[List[Link]]:
    return [list(links[i : i + max_links]) for i in range(0, len(links), max_links)]


def build_stem(children: Sequence[Link]) -> tuple[bytes, Link]:
    """Encode one stem over ``children`` and return it with its parent link."""
    block = encode_file_stem((c.cid, c.logical_size, c.encoded_size) for c in children)
    link = Link(
        cid=dag_pb_cid(block),
        logical_size=sum(c.logical_size for c in children),
        encoded_size=len(block) + sum(c.encoded_size for c in children),
    )
    return block, link


def build_tree(chunks: Sequence[Chunk], max_links: int = MAX_LINKS) -> TreeResult:
    if not chunks:
        raise StructuralError("cannot build a DAG from zero chunks")
    if max_links < 2:
        raise ValueError("max_links must be at least 2")

    nodes: Dict[str, bytes] = {}
    for chunk in chunks:
        # duplicate leaves keep their first position
        nodes.setdefault(str(chunk.cid), chunk.data)

    if len(chunks) == 1:
        return TreeResult(nodes=nodes, root=chunks[0].cid)

    level = [Link(cid=c.cid, logical_size=c.size, encoded_size=len(c.data)) for c in chunks]
    stem_levels: List[int] = []
    while len(level) > 1:
        next_level: List[Link] = []
        for bucket in group_links(level, max_links):
            block, link = build_stem(bucket)
            nodes.setdefault(str(link.cid), block)
            next_level.append(link)
        stem_levels.append(len(next_level))
        logger.debug("DAG level %d: %d links -> %d stems", len(stem_levels), len(level), len(next_level))
        level = next_level

    return TreeResult(nodes=nodes, root=level[0].cid, stem_levels=stem_levels)
