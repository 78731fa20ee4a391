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
The connection state machine.

.. currentmodule:: richpipe.ipc.state
"""
import enum
from typing import FrozenSet, Mapping

from richpipe.exc import IllegalTransition


class ConnectionState(enum.Enum):
    """
    Represents the state of an IPC connection.
    """
    #: No socket has been opened yet.
    DISCONNECTED = "disconnected"

    #: Candidate sockets are being tried.
    CONNECTING = "connecting"

    #: The socket is open and the handshake has been sent.
    CONNECTED = "connected"

    #: The peer has sent READY; commands can be sent.
    READY = "ready"

    #: The connection has been torn down.
    CLOSED = "closed"


S = ConnectionState

#: Every state, mapped to the states it may move to.
TRANSITIONS = {
    S.DISCONNECTED: frozenset({S.CONNECTING, S.CLOSED}),
    S.CONNECTING: frozenset({S.CONNECTED, S.CLOSED}),
    S.CONNECTED: frozenset({S.READY, S.CLOSED}),
    S.READY: frozenset({S.CLOSED}),
    # a closed client may log in again
    S.CLOSED: frozenset({S.CONNECTING}),
}  # type: Mapping[ConnectionState, FrozenSet[ConnectionState]]

assert set(TRANSITIONS) == set(ConnectionState)

del S


def transition(current: ConnectionState, target: ConnectionState) -> ConnectionState:
    """
    Checks that a connection can move from one state to another.

    :param current: The state the connection is in now.
    :param target: The state the connection wants to move to.
    :return: The new state, i.e. ``target``.
    :raises IllegalTransition: If the two states are not linked.
    """
    if target not in TRANSITIONS[current]:
        raise IllegalTransition(current, target)

    return target
