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
Exceptions raised from within the library.

.. currentmodule:: richpipe.exc
"""
import enum
import warnings


class RichPipeError(Exception):
    """
    The base class for all richpipe exceptions.
    """


# Connection based exceptions.
class EndpointsExhausted(RichPipeError, ConnectionError):
    """
    Raised when no IPC endpoint could be found after searching every candidate slot.
    """

    def __init__(self, tried: int):
        #: The number of endpoints that were tried.
        self.tried = tried

    def __str__(self) -> str:
        return "Could not find a running Discord instance after searching {} pipes" \
            .format(self.tried)

    __repr__ = __str__


class ConnectionIOError(RichPipeError, ConnectionError):
    """
    Raised when the transport fails in a way that cannot be retried.
    """


class ConnectionClosed(RichPipeError, ConnectionError):
    """
    Raised when the IPC connection closes while something is still waiting on it.

    :ivar code: The close code sent by the peer, if any.
    :ivar reason: The close reason sent by the peer, if any.
    """

    def __init__(self, reason: str = "Connection closed", code: int = None):
        self.reason = reason
        self.code = code

    def __str__(self) -> str:
        if self.code is None:
            return self.reason

        return "{} (code {})".format(self.reason, self.code)

    __repr__ = __str__


class DecodeError(RichPipeError):
    """
    Raised when an incoming frame has a malformed header, length, or body.
    """


# Protocol based exceptions.
class ErrorCode(enum.IntEnum):
    UNKNOWN_ERROR = 1000
    INVALID_PAYLOAD = 4000
    INVALID_COMMAND = 4002
    INVALID_GUILD = 4003
    INVALID_EVENT = 4004
    INVALID_CHANNEL = 4005
    INVALID_PERMISSIONS = 4006
    INVALID_CLIENT_ID = 4007
    INVALID_ORIGIN = 4008
    INVALID_TOKEN = 4009
    INVALID_USER = 4010
    OAUTH2_ERROR = 5000
    SELECT_CHANNEL_TIMED_OUT = 5001
    GET_GUILD_TIMED_OUT = 5002
    SELECT_VOICE_FORCE_REQUIRED = 5003
    CAPTURE_SHORTCUT_ALREADY_LISTENING = 5004

    UNKNOWN = 0


class ProtocolError(RichPipeError):
    """
    Raised when the peer answers a command with an ``ERROR`` event.

    This only ever affects the request it was sent for; the connection stays usable.
    """

    def __init__(self, error: dict, nonce: str = None):
        error_code = error.get("code", 0)
        try:
            #: The error code for this response.
            self.error_code = ErrorCode(error_code)
        except ValueError:
            warnings.warn("Received unknown error code {}".format(error_code))
            #: The error code for this response.
            self.error_code = ErrorCode.UNKNOWN

        #: The raw error code sent by the peer.
        self.code = error_code
        #: The error message sent by the peer.
        self.message = error.get("message")
        #: The nonce of the request this error answers, if any.
        self.nonce = nonce

        self.error = error

    def __str__(self) -> str:
        if self.error_code == ErrorCode.UNKNOWN:
            return repr(self.error)

        return "{} ({}): {}".format(self.code, self.error_code.name, self.message)

    __repr__ = __str__


class NotReady(RichPipeError, RuntimeError):
    """
    Raised when a command is issued before the handshake has completed.
    """


class IllegalTransition(RichPipeError, RuntimeError):
    """
    Raised when the connection is asked to move between two states that are not linked.
    """

    def __init__(self, current, target):
        self.current = current
        self.target = target

    def __str__(self) -> str:
        return "Cannot move from {} to {}".format(self.current.name, self.target.name)

    __repr__ = __str__


# Local exceptions.
class ValidationError(RichPipeError, ValueError):
    """
    Raised when a presence payload violates one of the structural limits of the protocol.
    """


class OAuth2Error(RichPipeError):
    """
    Raised when exchanging an OAuth2 authorization code fails.
    """

    def __init__(self, status_code: int, error: dict):
        self.status_code = status_code
        self.error = error

    def __str__(self) -> str:
        return "Failed to exchange code ({}): {}".format(self.status_code, self.error)

    __repr__ = __str__
