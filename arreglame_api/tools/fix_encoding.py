"""
Scan source files for stray encoding artifacts and clean them in place.

A UTF-8 BOM or a 0xC2 byte (an invisible U+00C2, usually from a mis-encoded
non-breaking space) breaks schema and code loaders. Flagged files have the
BOM and U+00C2 removed and NBSP replaced with a plain space.

Usage:
    python -m arreglame_api.tools.fix_encoding [root] [--dry-run]
"""
from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Sequence

logger = logging.getLogger(__name__)

EXTENSIONS = (".ts", ".graphql", ".gql", ".js", ".py")
UTF8_BOM = b"\xef\xbb\xbf"


@dataclass
class FileReport:
    path: Path
    has_bom: bool
    has_c2: bool
    cleaned: bool = False


def clean_text(text: str) -> str:
    """Drop BOM and U+00C2 characters; NBSP becomes a regular space."""
    return text.replace("\ufeff", "").replace("\u00c2", "").replace("\u00a0", " ")


def iter_source_files(root: Path) -> Iterator[Path]:
    for path in sorted(root.rglob("*")):
        if path.is_file() and path.suffix in EXTENSIONS:
            yield path


# PUBLIC_INTERFACE
def check_file(path: Path, dry_run: bool = False) -> FileReport | None:
    """
    Inspect one file; return a report when it is suspicious, otherwise None.

    Suspicious files are rewritten with the cleaned text unless dry_run is set.
    Raises OSError on read/write failures.
    """
    content = path.read_bytes()
    has_bom = content.startswith(UTF8_BOM)
    has_c2 = b"\xc2" in content
    if not (has_bom or has_c2):
        return None

    report = FileReport(path=path, has_bom=has_bom, has_c2=has_c2)
    if not dry_run:
        text = content.decode("utf-8", errors="replace")
        path.write_text(clean_text(text), encoding="utf-8")
        report.cleaned = True
    return report


# PUBLIC_INTERFACE
def fix_tree(root: Path, dry_run: bool = False) -> List[FileReport]:
    """Walk root and check every source file with a known extension."""
    return [r for r in (check_file(p, dry_run) for p in iter_source_files(root)) if r is not None]


def _print_report(reports: Sequence[FileReport], dry_run: bool) -> None:
    for report in reports:
        print(f"Suspicious file: {report.path}")
        if report.has_bom:
            print("  - UTF-8 BOM (byte order mark) at the start")
        if report.has_c2:
            print("  - contains byte 0xC2 (possible invisible U+00C2)")
        if report.cleaned:
            print("  - cleaned")
    action = "would be cleaned" if dry_run else "cleaned"
    print(f"Scan finished: {len(reports)} file(s) {action}.")


# PUBLIC_INTERFACE
def main(argv: List[str] | None = None) -> int:
    """CLI entry point. Returns 0 on success, 1 on I/O errors."""
    parser = argparse.ArgumentParser(description="Remove BOM/0xC2 encoding artifacts from source files.")
    parser.add_argument("root", nargs="?", default="src", help="Directory to scan (default: ./src)")
    parser.add_argument("--dry-run", action="store_true", help="Report suspicious files without rewriting them")
    args = parser.parse_args(argv)

    root = Path(args.root)
    print(f"Scanning {root} for U+00C2 / BOM artifacts...")
    try:
        if not root.is_dir():
            raise FileNotFoundError(f"Directory not found: {root}")
        reports = fix_tree(root, dry_run=args.dry_run)
    except OSError as exc:
        logger.error("Error during scan: %s", exc)
        print(f"Error during scan: {exc}", file=sys.stderr)
        return 1

    _print_report(reports, args.dry_run)
    return 0


if __name__ == "__main__":
    sys.exit(main())
