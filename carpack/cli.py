from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import List, Optional

from carpack.carv2 import pack, pack_v1
from carpack.errors import CarError, IntegrityError
from carpack.reader import CarReader


def cmd_pack(
    input_path: str,
    output: str,
    *,
    v1: bool = False,
    jobs: Optional[int] = None,
    quiet: bool = False,
) -> str:
    """Encode a file as a CAR archive.

    Args:
        input_path: File to archive.
        output: Destination .car path.
        v1: Write a bare CARv1 payload instead of CARv2 with an index.
        jobs: Threads used to hash leaf chunks.
        quiet: Print only the root CID.

    Returns:
        The root CID string.
    """
    data = Path(input_path).read_bytes()
    t0 = time.time()
    archive = pack_v1(data, workers=jobs) if v1 else pack(data, workers=jobs)
    Path(output).write_bytes(archive.data)
    dt = max(time.time() - t0, 1e-6)
    if quiet:
        print(archive.root_cid)
    else:
        mib = len(data) / (1024.0 * 1024.0)
        print(f"Root CID: {archive.root_cid}")
        print(
            f"Done: {archive.chunk_count} chunks, {archive.block_count} blocks; "
            f"{mib:.2f} MiB in {dt:.1f}s; CAR{'v1' if v1 else 'v2'} {len(archive.data)} bytes"
        )
    return archive.root_cid


def cmd_info(archive: str) -> bool:
    r = CarReader.open(archive)
    print(f"Archive: {archive}")
    print(f"  Version: {r.version}")
    if r.header is not None:
        h = r.header
        print(f"  Data offset: {h.data_offset}")
        print(f"  Data size: {h.data_size}")
        print(f"  Index offset: {h.index_offset}")
        print(f"  Index entries: {len(r.index)}")
    print(f"  Root: {r.root}")
    print(f"  Blocks: {len(r.records)}")
    print(f"    Raw: {len([x for x in r.records if x.cid.codec.name == 'raw'])}")
    print(f"    dag-pb: {len([x for x in r.records if x.cid.codec.name == 'dag-pb'])}")
    return True


def cmd_verify(archive: str) -> bool:
    r = CarReader.open(archive)
    try:
        r.verify()
    except IntegrityError as e:
        print(f"FAILED: {e}", file=sys.stderr)
        return False
    print(f"OK: {len(r.records)} blocks, root {r.root}")
    return True


def cmd_unpack(archive: str, output: str) -> bool:
    r = CarReader.open(archive)
    r.verify()
    content = r.extract()
    Path(output).write_bytes(content)
    print(f"Extracted {len(content)} bytes from {r.root}")
    return True


def main(argv: List[str] | None = None):
    ap = argparse.ArgumentParser(
        prog="carpack",
        description="Content-addressable archive (CAR) packer",
        epilog="Archives are CARv2 with a multihash-sorted index unless --v1 is given.",
    )
    ap.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    sub = ap.add_subparsers(dest="cmd", required=True)

    ap_pack = sub.add_parser("pack", help="Encode a file as a CAR archive")
    ap_pack.add_argument("input", help="Input file")
    ap_pack.add_argument("output", help="Output .car path")
    ap_pack.add_argument("--v1", action="store_true", help="Write a bare CARv1 archive")
    ap_pack.add_argument("--jobs", "-j", type=int, default=None, help="Hashing threads")
    ap_pack.add_argument("--quiet", help="print only the root CID", action="store_true")

    ap_info = sub.add_parser("info", help="Show archive information")
    ap_info.add_argument("archive", help="Archive path")

    ap_verify = sub.add_parser("verify", help="Verify block digests and index")
    ap_verify.add_argument("archive", help="Archive path")

    ap_unpack = sub.add_parser("unpack", help="Reassemble the archived file")
    ap_unpack.add_argument("archive", help="Archive path")
    ap_unpack.add_argument("output", help="Output file")

    args = ap.parse_args(argv)
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(asctime)s %(name)s %(levelname)s %(message)s")
    try:
        if args.cmd == "pack":
            cmd_pack(args.input, args.output, v1=args.v1, jobs=args.jobs, quiet=args.quiet)
        elif args.cmd == "info":
            cmd_info(args.archive)
        elif args.cmd == "verify":
            success = cmd_verify(args.archive)
            sys.exit(0 if success else 1)
        elif args.cmd == "unpack":
            cmd_unpack(args.archive, args.output)
        else:
            raise RuntimeError("Unknown command")
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
    except (CarError, ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
