# This file is part of richpipe.
#
# richpipe is free software: you can redistribute it and/or modify
# it under the terms of the GNU Lesser General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# richpipe is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU Lesser General Public License for more details.
#
# You should have received a copy of the GNU Lesser General Public License
# along with richpipe.  If not, see <http://www.gnu.org/licenses/>.

"""
Works out where the Discord IPC socket lives.

.. currentmodule:: richpipe.ipc.endpoint
"""
import os
import platform
import posixpath
from typing import Mapping

#: The highest IPC slot Discord will ever listen on.
MAX_SLOT = 9

#: The environment variables checked, in order, for the socket directory on non-Windows systems.
RUNTIME_DIR_VARIABLES = ("XDG_RUNTIME_DIR", "TMPDIR", "TMP", "TEMP")

#: The directory used when none of :data:`RUNTIME_DIR_VARIABLES` are set.
FALLBACK_DIR = "/tmp"


def is_windows(system: str = None) -> bool:
    if system is None:
        system = platform.system()

    return system == "Windows"


def get_ipc_path(slot: int = 0, *, system: str = None, environ: Mapping[str, str] = None) -> str:
    """
    Gets the IPC path for Discord.

    On Windows, this is a named pipe. Everywhere else, it's a Unix socket inside the first
    runtime directory that is set in the environment.

    :param slot: The IPC slot, between 0 and 9 inclusive.
    :param system: The platform name, as returned by :func:`platform.system`. Defaults to the \
        current platform.
    :param environ: The environment to look up the runtime directory in. Defaults to \
        :data:`os.environ`.
    :raises ValueError: If the slot is out of range.
    """
    if not 0 <= slot <= MAX_SLOT:
        raise ValueError("IPC slot must be between 0 and {}, not {}".format(MAX_SLOT, slot))

    if is_windows(system):
        return r"\\.\pipe\discord-ipc-{}".format(slot)

    if environ is None:
        environ = os.environ

    prefix = next((environ[key] for key in RUNTIME_DIR_VARIABLES if environ.get(key)),
                  FALLBACK_DIR)
    return posixpath.join(prefix, "discord-ipc-{}".format(slot))
