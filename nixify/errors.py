"""Errors raised by a generation run.

Everything here aborts the run. Warnings (paths the sandbox cannot reach)
are logged instead and never raised.
"""


class NixifyError(Exception):
    pass


class ProjectLoadError(NixifyError):
    """A project snapshot, lockfile or rc file could not be read."""


class UnsupportedConfigurationError(NixifyError):
    pass


class GraphConsistencyError(NixifyError):
    """The resolved graph contradicts itself.

    The resolver promises that every dependency edge resolves and that every
    virtual or patch locator's target was resolved too. Hitting this means
    the input is corrupt; there is nothing sensible to fall back to.
    """


class LocatorNotFoundError(GraphConsistencyError):
    def __init__(self, locator: str, wanted_by: str | None = None):
        msg = f"locator {locator!r} is not part of the resolved package set"
        if wanted_by:
            msg += f" (wanted by {wanted_by!r})"
        super().__init__(msg)
        self.locator = locator
        self.wanted_by = wanted_by


class DescriptorNotFoundError(GraphConsistencyError):
    def __init__(self, descriptor: str, wanted_by: str | None = None):
        msg = f"descriptor {descriptor!r} has no resolution"
        if wanted_by:
            msg += f" (dependency of {wanted_by!r})"
        super().__init__(msg)
        self.descriptor = descriptor
        self.wanted_by = wanted_by


class CacheIntegrityError(NixifyError):
    """A cache archive that should be hashed could not be read."""


class StoreImportError(NixifyError):
    """The store import tool failed for a reason other than being absent."""
