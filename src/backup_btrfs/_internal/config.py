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

"""The configuration file.

The configuration is a YAML document like:

    source_subvolume_path: /home
    snapshot_device: /dev/disk/by-uuid/...
    snapshot_subvolume_path: /
    snapshot_path: /snapshots
    snapshot_suffix: host_home
    user_local: backup
    policy_local: [PT1H, P1D, P1W]
    ssh:
      host: backup.example.com
      user: backup
      identity: /home/backup/.ssh/id_ed25519
    backup_device: /dev/mapper/data
    backup_subvolume_path: /data
    backup_path: /data/backups
    policy_remote: [P1D, P1W, P1M, P1Y]
"""

from __future__ import annotations

from typing import Any
from typing import cast
from typing import TYPE_CHECKING
from typing import TypedDict

import cfgv
import yaml

from backup_btrfs._internal.durations import Duration

if TYPE_CHECKING:
    from os import PathLike


class InvalidConfigError(ValueError):
    """The configuration file is unreadable or invalid."""


class SSHConfig(TypedDict):
    host: str
    user: str
    identity: str


class Config(TypedDict):
    """The top-level configuration.

    Attributes:
        source_subvolume_path: The OS path of the subvolume to back up.
        snapshot_device: The device holding the source subvolume.
        snapshot_subvolume_path: The OS path of the subvolume which contains
            snapshot_path.
        snapshot_path: The OS path of the directory to create snapshots in.
        snapshot_suffix: The suffix of snapshot names. Only snapshots with
            this suffix are subject to retention.
        user_local: The local user to run commands as.
        policy_local: The retention policy for local snapshots.
        ssh: How to connect to the backup host.
        backup_device: The device on the backup host to receive into.
        backup_subvolume_path: The OS path on the backup host of the
            subvolume which contains backup_path.
        backup_path: The OS path on the backup host to receive into.
        policy_remote: The retention policy for remote snapshots.
    """

    source_subvolume_path: str
    snapshot_device: str
    snapshot_subvolume_path: str
    snapshot_path: str
    snapshot_suffix: str
    user_local: str
    policy_local: list[str]
    ssh: SSHConfig
    backup_device: str
    backup_subvolume_path: str
    backup_path: str
    policy_remote: list[str]


def _check_duration(value: Any) -> None:  # noqa: ANN401
    cfgv.check_string(value)
    try:
        Duration(value)
    except ValueError as ex:
        raise cfgv.ValidationError(f"{value!r}: {ex}") from ex


_check_policy = cfgv.check_array(_check_duration)

_SSH_SCHEMA = cfgv.Map(
    "SSHConfig",
    None,
    cfgv.Required("host", cfgv.check_string),
    cfgv.Required("user", cfgv.check_string),
    cfgv.Required("identity", cfgv.check_string),
    cfgv.NoAdditionalKeys(("host", "user", "identity")),
)

_STRING_KEYS = (
    "source_subvolume_path",
    "snapshot_device",
    "snapshot_subvolume_path",
    "snapshot_path",
    "snapshot_suffix",
    "user_local",
    "backup_device",
    "backup_subvolume_path",
    "backup_path",
)

_SCHEMA = cfgv.Map(
    "Config",
    None,
    *(cfgv.Required(key, cfgv.check_string) for key in _STRING_KEYS),
    cfgv.Required("policy_local", _check_policy),
    cfgv.Required("policy_remote", _check_policy),
    cfgv.RequiredRecurse("ssh", _SSH_SCHEMA),
    cfgv.NoAdditionalKeys((*_STRING_KEYS, "policy_local", "policy_remote", "ssh")),
)


def load_from_path(path: str | PathLike[str]) -> Config:
    """Load and validate a configuration file.

    Raises:
        InvalidConfigError: If the file can't be read, isn't valid YAML, or
            doesn't match the schema.
    """
    return cast(
        "Config",
        cfgv.load_from_filename(
            path, _SCHEMA, yaml.safe_load, exc_tp=InvalidConfigError
        ),
    )
