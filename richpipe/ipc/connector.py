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
Opens the socket to the Discord client.

.. currentmodule:: richpipe.ipc.connector
"""
import logging
import sys
from typing import Awaitable, Callable, Mapping, Optional

import trio

from richpipe.exc import ConnectionIOError, EndpointsExhausted
from richpipe.ipc.endpoint import MAX_SLOT, get_ipc_path, is_windows

if sys.platform == "win32":
    import _winapi

logger = logging.getLogger("richpipe.ipc.connector")

Opener = Callable[[str], Awaitable[trio.abc.Stream]]


class OverlappedPipe(object):
    """
    A Windows named pipe handle opened for overlapped IO.

    Overlapped handles are driven by trio's IO completion port, so a read and a write can be in
    flight at the same time and a pending read can be cancelled.
    """

    def __init__(self, handle: int):
        self.handle = handle
        self.closed = False
        trio.lowlevel.register_with_iocp(handle)

    async def readinto(self, buffer: bytearray) -> int:
        return await trio.lowlevel.readinto_overlapped(self.handle, buffer)

    async def write(self, data: memoryview) -> int:
        return await trio.lowlevel.write_overlapped(self.handle, data)

    def close(self) -> None:
        if self.closed:
            return

        self.closed = True
        # pending reads and writes on the handle fail with ClosedResourceError
        _winapi.CloseHandle(self.handle)


class PipeStream(trio.abc.Stream):
    """
    A :class:`trio.abc.Stream` over a Windows named pipe.

    :param pipe: An object with async ``readinto`` and ``write`` methods and a ``close`` method,
        normally an :class:`.OverlappedPipe`.
    """

    def __init__(self, pipe):
        self._pipe = pipe

    async def send_all(self, data: bytes) -> None:
        if self._pipe.closed:
            raise trio.ClosedResourceError("pipe is closed")

        view = memoryview(data)
        try:
            while view:
                written = await self._pipe.write(view)
                view = view[written:]
        except BrokenPipeError as e:
            raise trio.BrokenResourceError("the Discord client closed the pipe") from e

    async def wait_send_all_might_not_block(self) -> None:
        await trio.lowlevel.checkpoint()

    async def receive_some(self, max_bytes: int = None) -> bytes:
        if self._pipe.closed:
            raise trio.ClosedResourceError("pipe is closed")

        buffer = bytearray(max_bytes or 65536)
        try:
            size = await self._pipe.readinto(buffer)
        except BrokenPipeError:
            if self._pipe.closed:
                raise trio.ClosedResourceError("pipe is closed") from None

            # the other end went away
            return b""

        return bytes(buffer[:size])

    async def aclose(self) -> None:
        self._pipe.close()
        await trio.lowlevel.checkpoint()


async def open_named_pipe(path: str) -> trio.abc.Stream:
    """
    Opens a Windows named pipe in overlapped mode.
    """
    handle = _winapi.CreateFile(
        path,
        _winapi.GENERIC_READ | _winapi.GENERIC_WRITE,
        0,
        _winapi.NULL,
        _winapi.OPEN_EXISTING,
        _winapi.FILE_FLAG_OVERLAPPED,
        _winapi.NULL,
    )
    await trio.lowlevel.checkpoint()
    return PipeStream(OverlappedPipe(handle))


async def open_unix_socket(path: str) -> trio.abc.Stream:
    """
    Opens a Unix domain socket.
    """
    return await trio.open_unix_socket(path)


class IPCConnector(object):
    """
    Finds and opens the IPC socket.

    Discord listens on the first free slot out of ``discord-ipc-0`` to ``discord-ipc-9``. Each slot
    is tried in order; a slot that doesn't exist moves on to the next one, but any other error is
    raised straight away.

    This is the only object that ever holds the socket.
    """

    def __init__(self, *, opener: Opener = None, max_slot: int = MAX_SLOT, system: str = None,
                 environ: Mapping[str, str] = None):
        """
        :param opener: An async callable that opens a path and returns a stream. Defaults to a \
            named pipe opener on Windows and a Unix socket opener elsewhere.
        :param max_slot: The highest slot to try.
        :param system: Overrides the platform name used to build paths.
        :param environ: Overrides the environment used to build paths.
        """
        if opener is None:
            opener = open_named_pipe if is_windows(system) else open_unix_socket

        self._opener = opener
        self.max_slot = max_slot
        self._system = system
        self._environ = environ

        self._stream = None  # type: Optional[trio.abc.Stream]

        #: The slot that is currently connected.
        self.slot = None  # type: Optional[int]
        #: The path that is currently connected.
        self.path = None  # type: Optional[str]

    @property
    def connected(self) -> bool:
        return self._stream is not None

    async def connect(self) -> trio.abc.Stream:
        """
        Connects to the first available IPC slot.

        Any stream left over from a previous connection is closed first.

        :return: The opened stream.
        :raises EndpointsExhausted: If no slot could be found.
        :raises ConnectionIOError: If a slot exists but could not be opened.
        """
        await self.aclose()

        for slot in range(self.max_slot + 1):
            path = get_ipc_path(slot, system=self._system, environ=self._environ)
            logger.debug("Trying IPC socket %s", path)

            try:
                stream = await self._opener(path)
            except FileNotFoundError:
                logger.debug("No IPC socket at %s", path)
                continue
            except OSError as e:
                raise ConnectionIOError("Failed to open IPC socket {}: {}".format(path, e)) from e

            self._stream = stream
            self.slot = slot
            self.path = path
            logger.info("Connected to IPC socket %s", path)
            return stream

        raise EndpointsExhausted(self.max_slot + 1)

    async def send_all(self, data: bytes) -> None:
        """
        Writes an entire buffer to the socket.
        """
        if self._stream is None:
            raise ConnectionIOError("Socket is not connected")

        try:
            await self._stream.send_all(data)
        except (trio.BrokenResourceError, trio.ClosedResourceError, OSError) as e:
            raise ConnectionIOError("Failed to write to IPC socket: {}".format(e)) from e

    async def receive_some(self, max_bytes: int = 65536) -> bytes:
        """
        Reads some data off of the socket.

        :return: The data read. An empty bytestring means the peer closed the socket.
        """
        if self._stream is None:
            raise ConnectionIOError("Socket is not connected")

        try:
            return await self._stream.receive_some(max_bytes)
        except (trio.BrokenResourceError, trio.ClosedResourceError, OSError) as e:
            raise ConnectionIOError("Failed to read from IPC socket: {}".format(e)) from e

    async def aclose(self) -> None:
        """
        Closes the current stream, if there is one.
        """
        stream, self._stream = self._stream, None
        self.slot = None
        self.path = None

        if stream is not None:
            logger.debug("Closing IPC socket")
            await stream.aclose()
