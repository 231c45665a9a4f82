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

"""Execution of commands, locally or on a remote host.

Every command runs in an ExecutionContext. A Local context runs the command
as a given local user via sudo. A Remote context runs it over ssh.
"""

from __future__ import annotations

from contextlib import ExitStack
import logging
import os
import shlex
from subprocess import DEVNULL
from subprocess import PIPE
from subprocess import Popen
import tempfile
from typing import NamedTuple
from typing import TYPE_CHECKING
from typing import Union

from backup_btrfs._internal.errors import CommandError

if TYPE_CHECKING:
    from collections.abc import Sequence
    from typing import IO

    from typing_extensions import TypeAlias

_LOG = logging.getLogger(__name__)


class Local(NamedTuple):
    """Run commands on this host, as the given user."""

    user: str


class Remote(NamedTuple):
    """Run commands over ssh.

    Attributes:
        host: The host to connect to.
        user: The user to log in as.
        identity: The path to the private key file.
    """

    host: str
    user: str
    identity: str


ExecutionContext: TypeAlias = Union[Local, Remote]


class Stage(NamedTuple):
    """One command of a pipeline."""

    program: str
    args: Sequence[str]
    context: ExecutionContext


def build_argv(
    program: str, args: Sequence[str], context: ExecutionContext
) -> list[str]:
    """Returns the argv which runs a command in the given context."""
    if isinstance(context, Local):
        return ["sudo", "-nu", context.user, program, *args]
    # ssh passes the command to the remote shell as a single string
    return [
        "ssh",
        "-i",
        context.identity,
        f"{context.user}@{context.host}",
        shlex.join([program, *args]),
    ]


def _read_stderr(stderr: IO[bytes]) -> str:
    stderr.seek(0)
    return os.fsdecode(stderr.read())


class Executor:
    """Runs commands and pipelines of commands.

    Commands are run to completion. There are no timeouts or retries.
    """

    def run(
        self, program: str, args: Sequence[str], context: ExecutionContext
    ) -> str:
        """Run a single command.

        Returns:
            The standard output of the command.

        Raises:
            CommandError: If the command exits with a non-zero status or is
                killed by a signal.
        """
        return self.run_piped([Stage(program=program, args=args, context=context)])

    def run_piped(self, stages: Sequence[Stage]) -> str:
        """Run a pipeline of commands.

        The standard output of each command is connected to the standard
        input of the next, like a shell pipeline. The commands may run in
        different contexts, e.g. "btrfs send" locally piped into
        "btrfs receive" on a remote host.

        Returns:
            The standard output of the last command.

        Raises:
            CommandError: If any command exits with a non-zero status or is
                killed by a signal. If several fail, the error is for the last
                one, like "set -o pipefail".
        """
        if not stages:
            msg = "pipeline must have at least one command"
            raise ValueError(msg)
        with ExitStack() as stack:
            processes: list[tuple[Popen[bytes], IO[bytes]]] = []
            stdin: IO[bytes] | int = DEVNULL
            for stage in stages:
                argv = build_argv(stage.program, stage.args, stage.context)
                _LOG.debug("running: %s", shlex.join(argv))
                # stderr goes to a file, so a chatty command can't block the
                # pipeline
                stderr = stack.enter_context(tempfile.TemporaryFile())
                process = stack.enter_context(
                    Popen(argv, stdin=stdin, stdout=PIPE, stderr=stderr)
                )
                # NB: Popen.stdout is only non-None when Popen(stdout=PIPE) is passed
                # https://github.com/python/typeshed/issues/3831
                assert process.stdout is not None
                if processes:
                    # https://docs.python.org/3/library/subprocess.html#replacing-shell-pipeline
                    prev_stdout = processes[-1][0].stdout
                    assert prev_stdout is not None
                    prev_stdout.close()
                processes.append((process, stderr))
                stdin = process.stdout

            last, _ = processes[-1]
            assert last.stdout is not None
            output = last.stdout.read()

            error: CommandError | None = None
            for process, stderr in processes:
                returncode = process.wait()
                if returncode != 0:
                    error = CommandError(
                        process.args,  # type: ignore[arg-type]
                        returncode,
                        _read_stderr(stderr),
                    )
            if error is not None:
                raise error
        return os.fsdecode(output)
