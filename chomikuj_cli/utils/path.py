"""
Utilities for handling file paths, destination naming, and URL parsing.
"""

import posixpath
import re
from pathlib import Path
from typing import Iterable
from urllib.parse import urlsplit, urlunsplit

from pathvalidate import sanitize_filename, sanitize_filepath

PART_SUFFIX = ".part"

_NUMBERED_STEM_REGEX = re.compile(r"^(?P<base>.*)\((?P<number>\d+)\)$")


def service_lookup_key(url: str, base_url: str) -> str:
    """
    Returns the path the ChomikBox service uses to look up a URL: the part of
    the URL after the site base, with a leading slash.
    """
    if url.startswith(base_url):
        return "/" + url[len(base_url) :]
    return "/" + urlsplit(url).path.lstrip("/")


def has_file_extension(url: str) -> bool:
    """True when the last path segment of the URL carries an extension."""
    last_segment = posixpath.basename(urlsplit(url).path.rstrip("/"))
    return bool(posixpath.splitext(last_segment)[1])


def file_extension(name: str) -> str:
    """Returns the file-name extension without the leading dot."""
    return posixpath.splitext(name)[1][1:]


def matches_extension(name: str, extensions: Iterable[str]) -> bool:
    """
    Checks a file name against an allow-list of extensions. An empty
    allow-list accepts every file. Comparison is case-sensitive.
    """
    allowed = set(extensions)
    if not allowed:
        return True
    return file_extension(name) in allowed


def normalize_url(url: str) -> str:
    """Normalizes a folder URL for use as a visited-set key."""
    parts = urlsplit(url.strip())
    path = parts.path.rstrip("/") or "/"
    return urlunsplit(
        (parts.scheme.lower(), parts.netloc.lower(), path, parts.query, "")
    )


def safe_file_name(name: str) -> str:
    """Sanitizes a service-provided file name for the local filesystem."""
    return sanitize_filename(name) or "unnamed"


def safe_remote_path(path: str) -> str:
    """Sanitizes a service-provided folder path, keeping its separators."""
    cleaned = sanitize_filepath(path.strip("/"), platform="auto")
    return str(cleaned).replace("\\", "/").strip("/")


def part_path(destination: Path) -> Path:
    """Returns the in-progress `.part` path for a destination file."""
    return destination.with_name(destination.name + PART_SUFFIX)


def next_available_path(destination: Path) -> Path:
    """
    Generates the lowest non-colliding `name(N).ext` for an existing file.

    A name without a numeric suffix starts at `(2)`; a name that already ends
    with `(N)` continues from `N + 1`.
    """
    candidate = destination
    while candidate.exists():
        stem, suffix = candidate.stem, candidate.suffix
        match = _NUMBERED_STEM_REGEX.match(stem)
        if match:
            stem = match.group("base")
            number = int(match.group("number")) + 1
        else:
            number = 2
        candidate = candidate.with_name(f"{stem}({number}){suffix}")
    return candidate


def create_dir(directory_path: Path) -> None:
    """Creates a directory if it does not already exist."""
    directory_path.mkdir(parents=True, exist_ok=True)
