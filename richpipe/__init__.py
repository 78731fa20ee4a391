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
richpipe - An async Python library for Discord Rich Presence over local IPC.

.. currentmodule:: richpipe

.. autosummary::
    :toctree:

    ipc
    dataclasses
    oauth

    exc
    util
"""
from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("richpipe")
except PackageNotFoundError:
    __version__ = "0.0.0"


from richpipe.dataclasses.presence import Activity, ActivityType, Assets, Button, Party, \
    PresenceBuilder, Secrets, Timestamps
from richpipe.dataclasses.user import ReadyEvent, User
from richpipe.exc import ConnectionClosed, ConnectionIOError, DecodeError, EndpointsExhausted, \
    NotReady, ProtocolError, RichPipeError, ValidationError
from richpipe.ipc.client import Command, IPCClient, open_ipc_client
from richpipe.ipc.state import ConnectionState
