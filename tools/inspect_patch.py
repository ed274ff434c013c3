#!/usr/bin/env python3
"""Print the pages, modules and connections of ZOIA patch files."""

from __future__ import annotations

import argparse
import glob
from pathlib import Path
import sys
from typing import Iterable, List

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from zoia.catalog import ModuleCatalog  # noqa: E402
from zoia.errors import CatalogError, PatchDecodeError  # noqa: E402
from zoia.patch import Patch  # noqa: E402
from zoia.reader import read_patch  # noqa: E402


def collect_paths(patterns: Iterable[str]) -> List[Path]:
    paths: List[Path] = []
    for pattern in patterns:
        matches = sorted(Path(p) for p in glob.glob(pattern, recursive=True))
        if matches:
            paths.extend(matches)
        else:
            # Treat literal path when glob finds nothing.
            candidate = Path(pattern)
            if candidate.exists():
                paths.append(candidate)
    seen: set[Path] = set()
    unique_paths: List[Path] = []
    for path in paths:
        resolved = path.resolve()
        if resolved not in seen:
            seen.add(resolved)
            unique_paths.append(path)
    return unique_paths


def format_table(header: List[str], rows: List[List[str]]) -> List[str]:
    widths = [
        max(len(row[i]) for row in ([header] + rows))
        for i in range(len(header))
    ]

    def fmt_row(row: List[str]) -> str:
        return "  ".join(cell.ljust(widths[i]) for i, cell in enumerate(row)).rstrip()

    lines = [fmt_row(header), "  ".join("-" * w for w in widths)]
    lines.extend(fmt_row(row) for row in rows)
    return lines


def describe_patch(patch: Patch) -> List[str]:
    lines = [
        f"name: {patch.name}",
        f"size: {patch.byte_count} bytes",
        f"modules: {patch.module_count}  pages: {len(patch.pages)}  "
        f"connections: {len(patch.connections)}  "
        f"color table: {'yes' if patch.has_color_table else 'no'}",
    ]

    for page in patch.pages:
        title = f"page {page.number}"
        if page.name:
            title += f" ({page.name})"
        if page.is_io_page:
            title += " [I/O]"
        lines.append("")
        lines.append(title)
        rows = [
            [
                str(module.index),
                f"{module.grid_position:2d}-{module.grid_range.stop - 1:2d}",
                module.display_name,
                module.color.name.lower(),
                ", ".join(block.name for block in module.blocks),
            ]
            for module in page.modules
        ]
        lines.extend(format_table(["#", "Cells", "Module", "Color", "Blocks"], rows))

    if patch.connections:
        lines.append("")
        lines.append("connections")
        rows = []
        for conn in patch.connections:
            source = patch.modules[conn.source]
            destination = patch.modules[conn.destination]
            rows.append(
                [
                    f"{source.display_name}[{conn.source_block}]",
                    f"{destination.display_name}[{conn.destination_block}]",
                    f"{conn.strength_db:7.2f} dB",
                ]
            )
        lines.extend(format_table(["From", "To", "Strength"], rows))
    return lines


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Show pages, modules and connections for ZOIA patch files."
    )
    parser.add_argument(
        "--catalog",
        required=True,
        help="Path to the module catalog JSON (ModuleIndex.json).",
    )
    parser.add_argument(
        "--strict-names",
        action="store_true",
        help="Fail on module/page names that are not valid UTF-8.",
    )
    parser.add_argument(
        "paths",
        nargs="+",
        help="File paths or glob patterns (quotes recommended for wildcards).",
    )
    args = parser.parse_args(argv)

    try:
        catalog = ModuleCatalog.from_json(args.catalog)
    except (OSError, CatalogError) as err:
        parser.error(f"cannot load catalog: {err}")

    targets = collect_paths(args.paths)
    if not targets:
        parser.error("No files matched the provided paths/patterns.")

    status = 0
    for idx, path in enumerate(targets):
        if idx:
            print()
        print(f"== {path}")
        try:
            patch = read_patch(path, catalog, strict_names=args.strict_names)
        except PatchDecodeError as err:
            print(f"ERR  {err}")
            status = 1
            continue
        for line in describe_patch(patch):
            print(line)

    return status


if __name__ == "__main__":
    raise SystemExit(main())
