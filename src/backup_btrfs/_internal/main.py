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

"""Main code for the backup-btrfs cli."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import TYPE_CHECKING

from rich.logging import RichHandler

from backup_btrfs._internal.commands import run
from backup_btrfs._internal.console import CONSOLE

if TYPE_CHECKING:
    from collections.abc import Mapping
    from collections.abc import Sequence

    from rich.console import Console


_DESCRIPTION = """
backup-btrfs takes read-only snapshots of a btrfs subvolume, sends them
incrementally to a remote host, and prunes old snapshots on both sides.
"""


def main(
    *,
    console: Console | None = None,
    argv: Sequence[str] | None = None,
    environ: Mapping[str, str] | None = None,
) -> int:
    """Main function for backup-btrfs."""
    console = console if console else CONSOLE
    argv = argv if argv is not None else sys.argv[1:]
    parser = argparse.ArgumentParser(prog="backup-btrfs", description=_DESCRIPTION)

    parser.add_argument(
        "-v", "--verbose", action="store_true", help="enable debug logs"
    )

    subparsers = parser.add_subparsers(
        dest="command", required=True, help="subcommand (required)"
    )

    run.add_args(subparsers.add_parser(run.NAME, **run.ARGS), environ=environ)

    args = parser.parse_args(argv)

    logging.basicConfig(
        level="NOTSET" if args.verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console)],
        force=True,
    )

    if args.command == run.NAME:
        return run.command(console=console, args=args)
    raise NotImplementedError


if __name__ == "__main__":
    raise SystemExit(main())
