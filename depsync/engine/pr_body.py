"""Pull request body rendering and the package table parsed back from it.

The table is the only part of the body the engine relies on: every row is
``| name | `from` → `to` | **file** | type |`` and is keyed by
``(name, file)`` when read back.
"""

import re
from collections.abc import Iterable

from depsync.models.domain import PackageUpdate

BODY_MARKER = "<!-- depsync -->"

_LINK_RE = re.compile(r"^\[(?P<text>[^\]]+)\]\([^)]*\)$")
_ROW_RE = re.compile(
    r"^\|\s*(?P<name>[^|]+?)\s*"
    r"\|\s*`(?P<from>[^`]*)`\s*(?:→|->)\s*`(?P<to>[^`]*)`\s*"
    r"\|\s*\*{0,2}(?P<file>[^|*]+?)\*{0,2}\s*\|"
)

PackageTable = dict[tuple[str, str], tuple[str, str]]


def _package_cell(update: PackageUpdate) -> str:
    if update.homepage:
        return f"[{update.name}]({update.homepage})"
    return update.name


def render_body(updates: Iterable[PackageUpdate]) -> str:
    """Render the body of a pull request proposing ``updates``."""
    updates = list(updates)
    lines = [
        "This PR contains the following updates:",
        "",
        "| Package | Change | File | Type |",
        "|---|---|---|---|",
    ]
    for update in updates:
        lines.append(
            f"| {_package_cell(update)} | `{update.current_version}` → `{update.new_version}` "
            f"| **{update.source_file}** | {update.update_type} |"
        )

    files = sorted({u.source_file for u in updates})
    lines += [
        "",
        f"{len(updates)} update(s) across {len(files)} file(s).",
        "",
        "---",
        "This PR is kept up to date automatically. Closing it without merging lets the next run propose it again.",
        "",
        BODY_MARKER,
    ]
    return "\n".join(lines)


def parse_package_table(body: str | None) -> PackageTable:
    """Read the package table of an existing pull request body.

    Returns ``{(name, file): (from, to)}``. Lines that are not table rows,
    including the header, are ignored.
    """
    table: PackageTable = {}
    for line in (body or "").splitlines():
        match = _ROW_RE.match(line.strip())
        if not match:
            continue
        name = match.group("name")
        link = _LINK_RE.match(name)
        if link:
            name = link.group("text")
        table[(name.strip(), match.group("file").strip())] = (match.group("from"), match.group("to"))
    return table


def updates_identical(body: str | None, updates: list[PackageUpdate]) -> bool:
    """True when ``body`` already proposes exactly ``updates``.

    Every incoming update needs an entry with the same target version, and
    the counts must match so a strict subset is not mistaken for a match.
    """
    table = parse_package_table(body)
    for update in updates:
        entry = table.get(update.identity)
        if entry is None or entry[1] != update.new_version:
            return False
    return len(table) == len({u.identity for u in updates})
