"""Directory listing parsing for the FTP server image harness.

Turns LIST output (Unix "ls -l" and DOS styles) and MLSD facts into
ListEntry records.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional


class EntryType(Enum):
    """Kind of directory entry."""
    FILE = "file"
    DIRECTORY = "directory"
    LINK = "link"
    UNKNOWN = "unknown"


@dataclass
class ListEntry:
    """One entry of a directory listing."""
    name: str
    entry_type: EntryType = EntryType.UNKNOWN
    size: Optional[int] = None
    target: Optional[str] = None

    @property
    def is_directory(self) -> bool:
        """True if entry is a directory."""
        return self.entry_type == EntryType.DIRECTORY


# -rw-r--r--    1 1000     1000           21 Jan 01 12:00 file2.txt
UNIX_LINE = re.compile(
    r'^(?P<mode>[bcdlps-][rwxsStTL-]{9})[+@.]?\s+'
    r'\d+\s+\S+\s+(?:\S+\s+)?(?P<size>\d+)\s+'
    r'(?P<date>\w{3}\s+\d{1,2}\s+(?:\d{1,2}:\d{2}|\d{4}))\s'
    r'(?P<name>.+)$'
)

# 01-01-24  12:00PM       <DIR>          dir1
DOS_LINE = re.compile(
    r'^\d{2}-\d{2}-\d{2,4}\s+\d{1,2}:\d{2}(?:AM|PM)?\s+'
    r'(?:(?P<dir><DIR>)|(?P<size>\d+))\s+(?P<name>.+)$',
    re.IGNORECASE
)

UNIX_TYPES = {
    "d": EntryType.DIRECTORY,
    "-": EntryType.FILE,
    "l": EntryType.LINK,
}

MLSD_TYPES = {
    "file": EntryType.FILE,
    "dir": EntryType.DIRECTORY,
    "os.unix=symlink": EntryType.LINK,
    "os.unix=slink": EntryType.LINK,
}


def parse_list_line(line: str) -> Optional[ListEntry]:
    """
    Parse one line of LIST output.

    Args:
        line: Raw listing line

    Returns:
        ListEntry, or None for blank lines and "total N" headers
    """
    line = line.rstrip("\r\n")
    if not line.strip() or line.lower().startswith("total "):
        return None

    match = UNIX_LINE.match(line)
    if match:
        entry_type = UNIX_TYPES.get(match.group("mode")[0], EntryType.UNKNOWN)
        name = match.group("name")
        target = None
        if entry_type == EntryType.LINK and " -> " in name:
            name, target = name.split(" -> ", 1)
        return ListEntry(
            name=name,
            entry_type=entry_type,
            size=int(match.group("size")),
            target=target,
        )

    match = DOS_LINE.match(line)
    if match:
        if match.group("dir"):
            return ListEntry(name=match.group("name"), entry_type=EntryType.DIRECTORY)
        return ListEntry(
            name=match.group("name"),
            entry_type=EntryType.FILE,
            size=int(match.group("size")),
        )

    # Unknown format, fall back to the last whitespace-separated field
    return ListEntry(name=line.split()[-1])


def parse_list_output(lines: Iterable[str]) -> List[ListEntry]:
    """
    Parse full LIST output, skipping "." and "..".

    Args:
        lines: Listing lines as delivered by ftplib's retrlines

    Returns:
        List of ListEntry objects
    """
    entries = []
    for line in lines:
        entry = parse_list_line(line)
        if entry is None or entry.name in (".", ".."):
            continue
        entries.append(entry)
    return entries


def entry_from_facts(name: str, facts: Dict[str, str]) -> Optional[ListEntry]:
    """
    Build a ListEntry from one MLSD record.

    Args:
        name: Entry name
        facts: Fact mapping as yielded by ftplib's mlsd

    Returns:
        ListEntry, or None for the "cdir" and "pdir" pseudo entries
    """
    kind = facts.get("type", "").lower()
    if kind in ("cdir", "pdir"):
        return None

    size = facts.get("size") or facts.get("sizd")
    return ListEntry(
        name=name,
        entry_type=MLSD_TYPES.get(kind, EntryType.UNKNOWN),
        size=int(size) if size and size.isdigit() else None,
    )


def entry_names(entries: Iterable[ListEntry]) -> List[str]:
    """Names of entries, with any leading directory stripped."""
    return [entry.name.rstrip("/").split("/")[-1] for entry in entries]
