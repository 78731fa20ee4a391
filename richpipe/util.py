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
Misc utilities shared via richpipe.

.. currentmodule:: richpipe.util
"""
import datetime
import uuid
from typing import Any, Optional, Union

import outcome
import trio
from multidict import MultiDict


def get_nonce() -> str:
    """
    Gets a random nonce.
    """
    return str(uuid.uuid4())


def to_milliseconds(value: Union[int, float, datetime.datetime]) -> int:
    """
    Converts a timestamp into integer milliseconds since the epoch.

    :param value: Either a :class:`datetime.datetime`, or a number that is already in milliseconds.
    """
    if isinstance(value, datetime.datetime):
        return int(value.timestamp() * 1000)

    return int(value)


def remove_from_multidict(d: MultiDict, key: str, item: Any):
    """
    Removes an item from a multidict key.
    """
    # works by popping all, removing, then re-adding into
    i = d.popall(key, [])
    if item in i:
        i.remove(item)

    for n in i:
        d.add(key, n)

    return d


class Promise(object):
    """
    A value that will be provided at some point in the future, by somebody else.

    A promise can only be settled once. Settling is synchronous, so it can happen from a plain
    callback; waiting suspends the current task until the promise is settled.

    .. code-block:: python3

        p = Promise()
        nursery.start_soon(some_task_that_calls_set, p)
        result = await p.wait()

    """

    def __init__(self):
        self._event = trio.Event()
        self._result = None  # type: Optional[outcome.Outcome]

    @property
    def done(self) -> bool:
        """
        :return: If this promise has been settled yet.
        """
        return self._event.is_set()

    def _settle(self, result: outcome.Outcome):
        if self._result is not None:
            raise RuntimeError("Promise has already been settled")

        self._result = result
        self._event.set()

    def set(self, value: Any = None):
        """
        Settles this promise with a value.
        """
        self._settle(outcome.Value(value))

    def set_error(self, error: BaseException):
        """
        Settles this promise with an exception, which is raised from :meth:`.wait`.
        """
        self._settle(outcome.Error(error))

    async def wait(self) -> Any:
        """
        Waits for this promise to be settled.

        :return: The value this promise was settled with.
        """
        await self._event.wait()
        return self._result.unwrap()
