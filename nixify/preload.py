"""Copy cache archives into the local Nix store ahead of the build.

Every fetch derivation in the generated expression is fixed-output, so its
store path is known from its name and sha512 alone. If that path already
exists, Nix skips the fetch. Adding the archives Yarn already downloaded
with ``nix-store --add-fixed`` saves fetching every dependency a second
time on the first build.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import tempfile
from collections.abc import Callable, Mapping
from pathlib import Path

from nixify.cache_index import CacheEntry
from nixify.config import NixifyConfig
from nixify.errors import CacheIntegrityError, StoreImportError
from nixstore.store import BATCH_SIZE, StoreToolError, add_fixed
from nixstore.store_path import make_fixed_output_path, sanitize_derivation_name

logger = logging.getLogger(__name__)

HASH_ALGO = "sha512"
# Staging subdirectories are named after this many checksum characters.
# Names collide when one package is cached twice (say, plain and patched),
# and the names nix-store sees must be the final store names.
STAGING_PREFIX_LENGTH = 7


def store_path_for(entry: CacheEntry, config: NixifyConfig) -> str:
    return make_fixed_output_path(
        sanitize_derivation_name(entry.locator),
        HASH_ALGO,
        bytes.fromhex(entry.sha512),
        store_dir=config.store_dir,
    )


def missing_entries(entries: Mapping[str, CacheEntry], config: NixifyConfig) -> list[CacheEntry]:
    """Entries whose fixed-output path is not in the store yet, sorted by locator."""
    return [
        entries[key] for key in sorted(entries)
        if not Path(store_path_for(entries[key], config)).exists()
    ]


def preload_cache_entries(
    entries: Mapping[str, CacheEntry],
    config: NixifyConfig,
    *,
    run: Callable[..., subprocess.CompletedProcess] = subprocess.run,
    batch_size: int = BATCH_SIZE,
) -> int:
    """Add missing cache archives to the store. Returns how many were added.

    Does nothing when preloading is disabled, when there is no store
    directory, or when the store tool is not installed.

    Raises:
        CacheIntegrityError: an archive could not be staged.
        StoreImportError: the store tool failed.
    """
    if not config.enable_nix_preload or not Path(config.store_dir).is_dir():
        return 0

    todo = missing_entries(entries, config)
    if not todo:
        return 0

    with tempfile.TemporaryDirectory(prefix="nixify-preload-") as tmp:
        staged: list[str] = []
        for entry in todo:
            subdir = Path(tmp) / entry.sha512[:STAGING_PREFIX_LENGTH]
            subdir.mkdir(exist_ok=True)
            dst = subdir / sanitize_derivation_name(entry.locator)
            if dst.exists():
                raise CacheIntegrityError(
                    f"cannot stage {entry.locator}: {dst.name} is already staged "
                    "under the same checksum prefix"
                )
            src = config.cache_folder / entry.filename
            try:
                shutil.copyfile(src, dst)
            except OSError as e:
                raise CacheIntegrityError(f"cannot read cache archive {src}: {e}") from e
            staged.append(str(dst))

        try:
            added = add_fixed(
                staged,
                HASH_ALGO,
                tool=config.nix_store_tool,
                batch_size=batch_size,
                cwd=str(config.project_cwd),
                run=run,
            )
        except FileNotFoundError:
            logger.debug("%s not found, skipping preload", config.nix_store_tool)
            return 0
        except StoreToolError as e:
            raise StoreImportError(str(e)) from e

    for path in added:
        logger.debug("Added %s", path)

    logger.info("Preloaded %d packages into the Nix store", len(staged))
    return len(staged)
