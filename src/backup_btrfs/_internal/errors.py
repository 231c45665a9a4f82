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

"""Exceptions raised by backup-btrfs.

None of these are retried internally. They propagate to the caller, which
decides whether to abort the backup cycle.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence


class BackupError(Exception):
    """Base class for all errors raised by backup-btrfs."""


class ParseError(BackupError, ValueError):
    """The output of a listing command could not be parsed."""


class ExtractionError(BackupError, ValueError):
    """A snapshot name doesn't follow the <timestamp>_<suffix> convention."""


class PathConversionError(BackupError):
    """No mount matches a btrfs path on a device."""


class PolicyConversionError(BackupError, ValueError):
    """A retention policy can't be represented as a list of time deltas."""


class NotFoundError(BackupError, LookupError):
    """An expected subvolume or snapshot doesn't exist."""


class DeleteRefusedError(BackupError):
    """Deletion of a protected subvolume was requested."""


class CommandError(BackupError):
    """A command exited with a non-zero status or was killed by a signal."""

    def __init__(
        self, args: Sequence[str], returncode: int, stderr: str = ""
    ) -> None:
        self.cmd = list(args)
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(self._describe())

    def _describe(self) -> str:
        cmd = " ".join(self.cmd)
        if self.returncode < 0:
            msg = f"command was terminated by signal {-self.returncode}: {cmd}"
        else:
            msg = f"command finished with status code {self.returncode}: {cmd}"
        if self.stderr:
            msg = f"{msg}: {self.stderr.strip()}"
        return msg
