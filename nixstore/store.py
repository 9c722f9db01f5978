"""Import files into the Nix store with the ``nix-store`` command.

``nix-store --add-fixed <algo> <file>...`` copies each file into the store
as a flat fixed-output path, named after the file's basename. The file
names on disk therefore have to be the final store names already.
"""

import subprocess
from collections.abc import Callable, Iterator, Sequence

# Keeps a single invocation's argument list well below ARG_MAX.
BATCH_SIZE = 100


class StoreToolError(Exception):
    """The store tool ran but exited non-zero."""

    def __init__(self, cmd: list[str], returncode: int, output: str):
        super().__init__(f"{cmd[0]} exited with status {returncode}: {output.strip()}")
        self.cmd = cmd
        self.returncode = returncode
        self.output = output


def batched(items: Sequence[str], size: int) -> Iterator[list[str]]:
    for start in range(0, len(items), size):
        yield list(items[start:start + size])


def add_fixed(
    paths: Sequence[str],
    hash_algo: str = "sha512",
    *,
    tool: str = "nix-store",
    batch_size: int = BATCH_SIZE,
    cwd: str | None = None,
    run: Callable[..., subprocess.CompletedProcess] = subprocess.run,
) -> list[str]:
    """Add files to the store in batches. Returns the printed store paths.

    A missing ``tool`` surfaces as FileNotFoundError from the first batch;
    deciding whether that matters is up to the caller.
    """
    added: list[str] = []
    for batch in batched(paths, batch_size):
        cmd = [tool, "--add-fixed", hash_algo, *batch]
        proc = run(cmd, cwd=cwd, capture_output=True, text=True)
        if proc.returncode != 0:
            raise StoreToolError(cmd, proc.returncode, proc.stderr or proc.stdout or "")
        added.extend(line for line in (proc.stdout or "").splitlines() if line)
    return added
