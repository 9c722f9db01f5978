"""Map resolved packages to the archives in Yarn's cache folder.

Every package that was fetched has a zip in the cache, named the way
Yarn's Cache.getLocatorPath names it:

    <slug>-<first 10 chars of checksum>.zip    checksum stored in the lockfile
    <slug>-<cacheKey>.zip                      no checksum stored

Packages whose archive is absent (workspaces, link: and portal:
dependencies) are not fetchable from the cache and get no entry.

Each entry records the sha512 the Nix fetch derivation will be pinned to:
the lockfile checksum minus its ``<cacheKey>/`` prefix, or the archive's
own hash when the lockfile has none.
"""

from __future__ import annotations

import os
from collections.abc import Iterable
from dataclasses import dataclass

from nixify.config import NixifyConfig
from nixify.errors import CacheIntegrityError
from nixify.project import Project, ResolvedPackage
from nixstore.hash import sha512_file_hex

CHECKSUM_PREFIX_LENGTH = 10


@dataclass(frozen=True)
class CacheEntry:
    locator: str
    filename: str
    sha512: str


def checksum_hash(checksum: str) -> str:
    """``10c0/abcd...`` → ``abcd...``; checksums without a prefix pass through."""
    return checksum.rsplit("/", 1)[-1]


def cache_filename(pkg: ResolvedPackage, checksum: str | None, cache_key: str) -> str:
    if checksum:
        return f"{pkg.locator.slug}-{checksum_hash(checksum)[:CHECKSUM_PREFIX_LENGTH]}.zip"
    return f"{pkg.locator.slug}-{cache_key}.zip"


def index_cache_entries(
    project: Project,
    config: NixifyConfig,
    cache_files: Iterable[str] | None = None,
) -> dict[str, CacheEntry]:
    """Index every package that has an archive in the cache folder.

    Args:
        cache_files: Names present in the cache folder. Read from
            ``config.cache_folder`` when not given.

    Raises:
        CacheIntegrityError: an archive without a stored checksum could
            not be hashed.
    """
    if cache_files is None:
        cache_files = os.listdir(config.cache_folder) if config.cache_folder.is_dir() else ()
    present = set(cache_files)
    # The lockfile records the key the cache was actually written with.
    cache_key = project.cache_key or config.cache_key

    entries: dict[str, CacheEntry] = {}
    for key, pkg in project.packages.items():
        checksum = project.checksum(pkg)
        filename = cache_filename(pkg, checksum, cache_key)
        if filename not in present:
            continue
        if checksum:
            sha512 = checksum_hash(checksum)
        else:
            path = config.cache_folder / filename
            try:
                sha512 = sha512_file_hex(path)
            except OSError as e:
                raise CacheIntegrityError(f"cannot hash cache archive {path}: {e}") from e
        entries[key] = CacheEntry(key, filename, sha512)
    return entries
