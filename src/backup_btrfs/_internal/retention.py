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

"""The retention policy engine.

A retention policy is an ascending list of durations, like
[PT1H, P1D, P1W]. Together with the current time, the durations divide the
past into consecutive windows ("buckets"). Walking the snapshots from newest
to oldest, a bucket is closed when a snapshot falls outside the current
window. Of each closed bucket, only the oldest member is kept. Snapshots
older than all the windows form a final, unbounded bucket, of which only the
newest member is kept.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from backup_btrfs._internal.durations import Duration
from backup_btrfs._internal.errors import PolicyConversionError

if TYPE_CHECKING:
    from collections.abc import Iterable
    from collections.abc import Sequence
    from datetime import timedelta

    import arrow

    from backup_btrfs._internal.naming import Snapshot

_LOG = logging.getLogger(__name__)


def policy_from_durations(
    durations: Iterable[Duration | str], *, now: arrow.Arrow
) -> list[timedelta]:
    """Convert configured durations into a retention policy.

    Calendar components (months, years) are resolved by measuring backwards
    from now.

    Args:
        durations: ISO 8601 durations, shortest first.
        now: The current time.

    Returns:
        A list of time deltas, in the same order.

    Raises:
        PolicyConversionError: If a duration is invalid or reaches outside
            the representable range of times, or the durations aren't
            strictly ascending.
    """
    policy: list[timedelta] = []
    for value in durations:
        try:
            duration = value if isinstance(value, Duration) else Duration(value)
            delta = duration.length_before(now)
        except (ValueError, OverflowError) as ex:
            msg = f"could not convert {value} to a time delta: {ex}"
            raise PolicyConversionError(msg) from ex
        if delta.total_seconds() <= 0:
            msg = f"retention durations must be positive: {value}"
            raise PolicyConversionError(msg)
        if policy and delta <= policy[-1]:
            msg = f"retention durations must be strictly ascending: {value}"
            raise PolicyConversionError(msg)
        policy.append(delta)
    return policy


def find_snapshots_to_delete(
    *,
    now: arrow.Arrow,
    policy: Sequence[timedelta],
    snapshots: Iterable[Snapshot],
    suffix: str,
) -> list[Snapshot]:
    """Decide which snapshots a retention policy doesn't keep.

    Snapshots with a different suffix are ignored entirely: they are never
    returned, and don't affect the buckets.

    The caller is responsible for exempting the most recent snapshot (the one
    just created) from deletion, since it may fall into any bucket.

    Args:
        now: The current time.
        policy: Strictly ascending durations.
        snapshots: Snapshots in any order.
        suffix: Only snapshots with this suffix are considered.

    Returns:
        The snapshots to delete, in no particular order.
    """
    matching = sorted(
        (s for s in snapshots if s.suffix == suffix),
        key=lambda s: s.timestamp,
        reverse=True,
    )
    windows = iter(policy)
    window = next(windows, None)
    bucket: list[Snapshot] = []
    to_delete: list[Snapshot] = []

    for snapshot in matching:
        if window is not None and now - snapshot.timestamp > window:
            if bucket:
                kept = bucket.pop()
                _LOG.debug("keeping %s (bucket of %s)", kept.btrfs_path, window)
                to_delete.extend(bucket)
            bucket = [snapshot]
            window = next(windows, None)
        else:
            bucket.append(snapshot)

    if bucket:
        if window is None:
            # unbounded tail bucket
            kept = bucket.pop(0)
        else:
            kept = bucket.pop()
        _LOG.debug("keeping %s (last bucket)", kept.btrfs_path)
        to_delete.extend(bucket)

    return to_delete
