# backup-btrfs - rotates btrfs snapshots and replicates them to a remote host.
#
# Copyright (C) 2024 Steven Brudenell and other contributors.
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.

"""Code for "backup-btrfs run"."""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING

import arrow
from rich.markup import escape

from backup_btrfs._internal.backup import run_backup
from backup_btrfs._internal.config import load_from_path
from backup_btrfs._internal.errors import BackupError
from backup_btrfs._internal.executor import Executor

if TYPE_CHECKING:
    import argparse
    from collections.abc import Mapping
    from typing import TypedDict

    from rich.console import Console

    from backup_btrfs._internal.backup import BackupResult
    from backup_btrfs._internal.config import Config

_LOG = logging.getLogger(__name__)

NAME = "run"

ENV_CONFIG = "BACKUP_BTRFS_CONFIG"
"""The environment variable naming the config file, if none is given."""


if TYPE_CHECKING:

    class _Args(TypedDict, total=False):
        help: str
        description: str


ARGS: _Args = {
    # shown in top-level help
    "help": "run one backup cycle",
    # shown in subcommand help
    "description": (
        "Take a snapshot, send it to the backup host, and delete old snapshots "
        "on both sides."
    ),
}


def add_args(
    parser: argparse.ArgumentParser, *, environ: Mapping[str, str] | None = None
) -> None:
    """Add args for "backup-btrfs run" to an ArgumentParser."""
    environ = os.environ if environ is None else environ
    default = environ.get(ENV_CONFIG)
    parser.add_argument(
        "config_file",
        type=load_from_path,
        nargs="?" if default else None,
        default=default,
        help=f"path to the config file (default: ${ENV_CONFIG})",
    )


def _print_result(console: Console, result: BackupResult) -> None:
    console.print(f"created [create]{escape(result.snapshot_path)}[/create]")
    if result.parent_path is None:
        console.print("[not_incremental]sent in full[/not_incremental]")
    else:
        console.print(
            f"sent incrementally from [path]{escape(result.parent_path)}[/path]"
        )
    for side, paths in (
        ("local", result.deleted_local),
        ("remote", result.deleted_remote),
    ):
        for path in paths:
            console.print(f"deleted {side} [delete]{escape(path)}[/delete]")


def command(*, console: Console, args: argparse.Namespace) -> int:
    """Implementation of "backup-btrfs run"."""
    config: Config = args.config_file
    try:
        result = run_backup(config, Executor(), now=arrow.utcnow())
    except (BackupError, OSError) as ex:
        _LOG.debug("backup failed", exc_info=True)
        console.print(f"[error]error:[/error] {escape(str(ex))}")
        return 1
    _print_result(console, result)
    return 0
