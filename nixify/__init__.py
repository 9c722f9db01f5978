"""nixify: compile a resolved Yarn project into a Nix build expression."""

from nixify.config import NixifyConfig, load_config
from nixify.errors import NixifyError
from nixify.generate import GenerateResult, generate, load_project
from nixify.project import Project, ResolvedPackage

__all__ = [
    "GenerateResult",
    "NixifyConfig",
    "NixifyError",
    "Project",
    "ResolvedPackage",
    "generate",
    "load_config",
    "load_project",
]
