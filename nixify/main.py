#!/usr/bin/env python3
"""nixify: generate a Nix expression for a Yarn project."""

import argparse
import logging
import os
import sys
from pathlib import Path

from nixify.cache_index import index_cache_entries
from nixify.closure import sorted_closure
from nixify.config import load_config
from nixify.errors import NixifyError
from nixify.generate import generate, is_temporary_project, load_project
from nixstore.hash import sha512_file_hex
from nixstore.store_path import make_fixed_output_path, sanitize_derivation_name

logger = logging.getLogger("nixify")

LOG_LEVEL_ENV = "NIXIFY_LOG_LEVEL"


def cmd_generate(args):
    config = load_config(args.cwd)
    if not args.force and is_temporary_project(config.project_cwd):
        logger.info("Skipping Nix expression generation in a temporary directory")
        return
    project = load_project(config, args.snapshot)
    generate(project, config)


def cmd_closure(args):
    config = load_config(args.cwd)
    project = load_project(config, args.snapshot)
    entries = index_cache_entries(project, config)
    for key in sorted_closure(project, project.package(args.locator), entries):
        print(key)


def cmd_bin(args):
    config = load_config(args.cwd)
    project = load_project(config, args.snapshot)
    for command, script in project.package(args.locator).bin:
        print(f"{command}\t{script}")


def cmd_store_path(args):
    digest = sha512_file_hex(args.path)
    name = args.name or Path(args.path).name
    print(make_fixed_output_path(
        sanitize_derivation_name(name), "sha512", bytes.fromhex(digest),
        store_dir=args.store_dir,
    ))


def cmd_hash_file(args):
    print(f"sha512:{sha512_file_hex(args.path)}")


def main(argv=None):
    parser = argparse.ArgumentParser(prog="nixify", description="Generate Nix expressions for Yarn projects")
    parser.add_argument("--log-level", default=os.environ.get(LOG_LEVEL_ENV, "INFO"),
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    sub = parser.add_subparsers(dest="command")

    # generate
    p = sub.add_parser("generate", help="Write yarn-project.nix for a project")
    p.add_argument("--cwd", default=".", help="Project root")
    p.add_argument("--snapshot", help="Resolved-project JSON to use instead of yarn.lock")
    p.add_argument("--force", action="store_true", help="Generate even in a temporary directory")
    p.set_defaults(func=cmd_generate)

    # closure
    p = sub.add_parser("closure", help="List the cache entries a package needs")
    p.add_argument("locator")
    p.add_argument("--cwd", default=".", help="Project root")
    p.add_argument("--snapshot", help="Resolved-project JSON to use instead of yarn.lock")
    p.set_defaults(func=cmd_closure)

    # bin
    p = sub.add_parser("bin", help="List the commands a package provides")
    p.add_argument("locator")
    p.add_argument("--cwd", default=".", help="Project root")
    p.add_argument("--snapshot", help="Resolved-project JSON to use instead of yarn.lock")
    p.set_defaults(func=cmd_bin)

    # store-path
    p = sub.add_parser("store-path", help="Store path a cache archive would be preloaded to")
    p.add_argument("path")
    p.add_argument("--name", help="Store name, usually the package locator")
    p.add_argument("--store-dir", default="/nix/store")
    p.set_defaults(func=cmd_store_path)

    # hash-file
    p = sub.add_parser("hash-file", help="sha512 of a file, as pinned in the expression")
    p.add_argument("path")
    p.set_defaults(func=cmd_hash_file)

    args = parser.parse_args(argv)
    logging.basicConfig(level=args.log_level, format="%(levelname)s %(message)s")
    if not args.command:
        parser.print_help()
        sys.exit(1)
    try:
        args.func(args)
    except NixifyError as e:
        logger.error("%s", e)
        sys.exit(1)


if __name__ == "__main__":
    main()
