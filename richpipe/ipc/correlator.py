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
Matches replies from the peer to the commands that caused them.

.. currentmodule:: richpipe.ipc.correlator
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict

from richpipe.util import Promise

logger = logging.getLogger("richpipe.ipc.correlator")


@dataclass
class PendingRequest:
    """
    A command that has been sent, but not yet answered.
    """

    #: The nonce the command was sent with.
    nonce: str

    #: The name of the command.
    command: str

    #: The promise the caller is waiting on.
    resolver: Promise = field(default_factory=Promise)


class RequestCorrelator(object):
    """
    Keeps track of outstanding requests, keyed by nonce.

    Replies are matched purely by nonce, so they can arrive in any order. Each request is removed
    from the table in the same step it is looked up in, so it can only ever be settled once.
    """

    def __init__(self):
        self._pending = {}  # type: Dict[str, PendingRequest]

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, nonce: str) -> bool:
        return nonce in self._pending

    def register(self, nonce: str, command: str) -> Promise:
        """
        Registers a new outstanding request.

        :param nonce: The nonce of the request. This must not already be pending.
        :param command: The command name, used for logging.
        :return: The :class:`.Promise` that will be settled with the reply.
        """
        if nonce in self._pending:
            raise ValueError("Nonce {} is already pending".format(nonce))

        request = PendingRequest(nonce=nonce, command=command)
        self._pending[nonce] = request
        return request.resolver

    def resolve(self, nonce: str, data: Any) -> bool:
        """
        Settles a pending request successfully.

        :return: True if a request was waiting on this nonce, False if the reply was unsolicited.
        """
        request = self._pending.pop(nonce, None)
        if request is None:
            logger.debug("Ignoring reply with unknown nonce %s", nonce)
            return False

        logger.debug("Resolved %s request %s", request.command, nonce)
        request.resolver.set(data)
        return True

    def fail(self, nonce: str, error: BaseException) -> bool:
        """
        Settles a pending request with an error.

        :return: True if a request was waiting on this nonce, False otherwise.
        """
        request = self._pending.pop(nonce, None)
        if request is None:
            logger.debug("Ignoring error for unknown nonce %s", nonce)
            return False

        logger.debug("Failed %s request %s: %s", request.command, nonce, error)
        request.resolver.set_error(error)
        return True

    def discard(self, nonce: str) -> bool:
        """
        Forgets a pending request without settling it, e.g. when its caller stopped waiting.

        :return: True if a request was removed.
        """
        request = self._pending.pop(nonce, None)
        if request is None:
            return False

        logger.debug("Discarded %s request %s", request.command, nonce)
        return True

    def drain_all(self, error: BaseException) -> int:
        """
        Fails every outstanding request with the same error.

        :return: The number of requests that were failed.
        """
        pending, self._pending = self._pending, {}
        for request in pending.values():
            request.resolver.set_error(error)

        if pending:
            logger.debug("Drained %d outstanding request(s)", len(pending))

        return len(pending)
