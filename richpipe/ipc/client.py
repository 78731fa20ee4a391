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
The client for an IPC connection.

.. currentmodule:: richpipe.ipc.client
"""
import enum
import inspect
import logging
import os
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Iterable, Optional, Union

import trio
from multidict import MultiDict

from richpipe.dataclasses.presence import Activity
from richpipe.dataclasses.user import ReadyEvent
from richpipe.exc import ConnectionClosed, ConnectionIOError, NotReady, ProtocolError, \
    RichPipeError
from richpipe.ipc.connector import IPCConnector
from richpipe.ipc.correlator import RequestCorrelator
from richpipe.ipc.packet import IPCOpcode, IPCPacket, PacketDecoder
from richpipe.ipc.state import ConnectionState, transition
from richpipe.util import Promise, get_nonce, remove_from_multidict

logger = logging.getLogger("richpipe.ipc")
event_logger = logging.getLogger("richpipe.events")


class Command(str, enum.Enum):
    """
    The commands that can be sent over IPC.
    """
    DISPATCH = "DISPATCH"
    AUTHORIZE = "AUTHORIZE"
    AUTHENTICATE = "AUTHENTICATE"
    SET_ACTIVITY = "SET_ACTIVITY"
    SUBSCRIBE = "SUBSCRIBE"
    UNSUBSCRIBE = "UNSUBSCRIBE"


class IPCClient(object):
    """
    Represents an IPC (interprocess communication) client. This connects to the Discord client on
    the IPC socket.

    To use, create a new instance with your app's client ID, and log in inside a nursery:

    .. code-block:: python3

        ipc = IPCClient(323578534763298816)

        async with trio.open_nursery() as nursery:
            ready = await ipc.login(nursery)
            await ipc.set_activity(PresenceBuilder().set_details("Hello!").build())
            ...
            await ipc.destroy()

    :func:`.open_ipc_client` wraps all of this up in an async context manager.
    """
    VERSION = 1

    def __init__(self, client_id: Union[int, str], *,
                 keepalive_interval: float = 30.0,
                 close_grace: float = 0.1,
                 pid: int = None,
                 connector: IPCConnector = None):
        """
        :param client_id: The client ID to authenticate with.
        :param keepalive_interval: The number of seconds between PING packets once ready.
        :param close_grace: The number of seconds to wait after clearing the activity in \
            :meth:`.destroy`, before the socket is closed.
        :param pid: The process ID to report activities for. Defaults to this process.
        :param connector: The :class:`.IPCConnector` used to find the socket.
        """
        self.client_id = str(client_id)
        self.keepalive_interval = keepalive_interval
        self.close_grace = close_grace
        self.pid = pid if pid is not None else os.getpid()

        #: The current :class:`.ConnectionState` of this client.
        self.state = ConnectionState.DISCONNECTED

        #: The :class:`.ReadyEvent` sent by the Discord client, once ready.
        self.ready_event = None  # type: Optional[ReadyEvent]

        self._connector = connector if connector is not None else IPCConnector()
        self._decoder = PacketDecoder()
        self._requests = RequestCorrelator()
        self._subscribers = MultiDict()

        self._nursery = None  # type: Optional[trio.Nursery]
        self._write_lock = trio.Lock()
        self._login_promise = None  # type: Optional[Promise]
        self._read_cancel_scope = None  # type: Optional[trio.CancelScope]
        self._keepalive_cancel_scope = None  # type: Optional[trio.CancelScope]

    def __repr__(self) -> str:
        return "<IPCClient client_id={} state={}>".format(self.client_id, self.state.name)

    @property
    def ready(self) -> bool:
        return self.state is ConnectionState.READY

    @property
    def pending_requests(self) -> int:
        """
        :return: The number of commands still waiting on a reply.
        """
        return len(self._requests)

    def _move_to(self, target: ConnectionState):
        self.state = transition(self.state, target)
        logger.info("IPC connection is now %s", target.value)

    # Subscriber methods
    def subscribe(self, name: str, handler: Callable[..., Any]) -> Callable[..., Any]:
        """
        Adds a handler for an event or command name.

        Incoming frames are delivered to handlers registered for their ``cmd`` and their ``evt``.
        A few names are also used for connection level events:

         - ``ready``: called with the :class:`.ReadyEvent`.
         - ``ping`` / ``pong``: called with the packet body.
         - ``error``: called with a :class:`.ProtocolError` that had no matching request.
         - ``disconnected``: called with the exception that closed the connection.

        Handlers can be plain functions or async functions; async ones are spawned into the
        client's nursery.

        :param name: The name to subscribe to.
        :param handler: The handler to call.
        :return: The handler, so this can be used as a decorator with :func:`functools.partial`.
        """
        self._subscribers.add(name, handler)
        return handler

    def unsubscribe(self, name: str, handler: Callable[..., Any]):
        """
        Removes a handler added with :meth:`.subscribe`.
        """
        self._subscribers = remove_from_multidict(self._subscribers, key=name, item=handler)

    async def _safety_wrapper(self, func, *args):
        """
        Ensures a handler's error is caught and doesn't balloon out.
        """
        try:
            await func(*args)
        except Exception:
            event_logger.exception("Unhandled exception in {}!".format(func.__name__))

    def _fire(self, name: Optional[str], *args):
        if name is None:
            return

        for handler in self._subscribers.getall(name, []):
            if inspect.iscoroutinefunction(handler):
                self._nursery.start_soon(self._safety_wrapper, handler, *args)
                continue

            try:
                handler(*args)
            except Exception:
                event_logger.exception("Unhandled exception in {}!".format(handler.__name__))

    # Writer methods
    async def _write_bytes(self, data: bytes):
        """
        Writes already serialized packets to the IPC socket. A failed write closes the connection.
        """
        try:
            async with self._write_lock:
                await self._connector.send_all(data)
        except ConnectionIOError as e:
            await self._teardown(e)
            raise

    async def _write_json(self, opcode: IPCOpcode, data: dict):
        """
        Writes JSON to the IPC socket.
        """
        packet = IPCPacket(opcode, data)
        logger.debug("Sending packet %r", packet)
        await self._write_bytes(packet.serialize())

    def _write_handshake(self):
        """
        Writes an IPC handshake.
        """
        data = {
            "v": IPCClient.VERSION,
            "client_id": self.client_id
        }

        return self._write_json(IPCOpcode.HANDSHAKE, data)

    # Reader methods
    async def _read_loop(self, task_status=trio.TASK_STATUS_IGNORED):
        """
        Reads packets off of the socket until the connection closes.
        """
        with trio.CancelScope() as scope:
            self._read_cancel_scope = scope
            task_status.started()

            try:
                while True:
                    chunk = await self._connector.receive_some()
                    if not chunk:
                        raise ConnectionClosed("Socket closed by the Discord client")

                    for packet in self._decoder.feed(chunk):
                        await self._handle_packet(packet)
                        if self.state is ConnectionState.CLOSED:
                            return
            except RichPipeError as e:
                logger.warning("IPC connection lost: %s", e)
                await self._teardown(e)

    async def _handle_packet(self, packet: IPCPacket):
        """
        Handles a single packet from the Discord client.
        """
        logger.debug("Received packet %r", packet)

        # the grand old opcode switch
        if packet.opcode == IPCOpcode.FRAME:
            await self._handle_frame(packet)

        elif packet.opcode == IPCOpcode.CLOSE:
            body = packet.json
            reason = body.get("message") or "Connection closed by the Discord client"
            error = ConnectionClosed(reason, body.get("code"))
            await self._teardown(error)

        elif packet.opcode == IPCOpcode.PING:
            self._fire("ping", packet.json)
            await self._write_json(IPCOpcode.PONG, packet.json)

        elif packet.opcode == IPCOpcode.PONG:
            self._fire("pong", packet.json)

        else:
            logger.warning("Ignoring unexpected %s packet", packet.opcode.name)

    async def _handle_frame(self, packet: IPCPacket):
        event = packet.event
        data = packet.data if packet.data is not None else {}

        if event == "READY":
            if self.state is not ConnectionState.CONNECTED:
                logger.warning("Ignoring READY received while %s", self.state.value)
                return

            self.ready_event = ReadyEvent.from_dict(data)
            self._move_to(ConnectionState.READY)
            await self._nursery.start(self._keepalive_loop, self.keepalive_interval)
            self._login_promise.set(self.ready_event)
            self._fire("ready", self.ready_event)
            return

        if event == "ERROR":
            error = ProtocolError(data, packet.nonce)
            if packet.nonce is not None and self._requests.fail(packet.nonce, error):
                return

            if self.state is ConnectionState.CONNECTED and not self._login_promise.done:
                # the handshake itself was refused
                self._login_promise.set_error(error)

            logger.warning("Received error from the Discord client: %s", error)
            self._fire("error", error)
            return

        if self.state is not ConnectionState.READY:
            logger.warning("Ignoring %s frame received while %s", packet.cmd, self.state.value)
            return

        if packet.nonce is not None:
            self._requests.resolve(packet.nonce, packet.data)

        self._fire(packet.cmd, packet)
        if event is not None and event != packet.cmd:
            self._fire(event, packet)

    # Keep-alive
    async def _keepalive_loop(self, interval: float, task_status=trio.TASK_STATUS_IGNORED):
        """
        Loops sending PING packets.
        """
        with trio.CancelScope() as scope:
            self._keepalive_cancel_scope = scope
            task_status.started()

            logger.debug("Pinging every %s seconds", interval)
            while True:
                await trio.sleep(interval)
                try:
                    await self.ping()
                except RichPipeError:
                    # the write path has already closed the connection
                    return

    # Connection lifecycle
    async def login(self, nursery: trio.Nursery) -> ReadyEvent:
        """
        Connects to the Discord client and performs the handshake.

        :param nursery: The nursery to run the reader and keep-alive tasks in. These tasks stop
            when the connection closes.
        :return: The :class:`.ReadyEvent` sent by the Discord client.
        :raises EndpointsExhausted: If the Discord client could not be found.
        :raises ConnectionIOError: If the socket could not be opened or written to.
        :raises ConnectionClosed: If the Discord client closed the connection instead of
            sending READY.
        """
        self._move_to(ConnectionState.CONNECTING)
        self._nursery = nursery

        try:
            await self._connector.connect()
        except BaseException:
            self._move_to(ConnectionState.CLOSED)
            raise

        self._decoder.clear()
        self._login_promise = Promise()
        self.ready_event = None
        self._move_to(ConnectionState.CONNECTED)

        try:
            await nursery.start(self._read_loop)
            await self._write_handshake()
            return await self._login_promise.wait()
        except BaseException as e:
            error = e if isinstance(e, RichPipeError) else ConnectionClosed("Login was interrupted")

            # no-op if the connection is already closed
            with trio.CancelScope(shield=True):
                await self._teardown(error)
            raise

    async def _teardown(self, error: BaseException):
        """
        Closes the connection, failing everything that is still waiting on it.
        """
        if self.state is ConnectionState.CLOSED:
            return

        self._move_to(ConnectionState.CLOSED)

        if self._keepalive_cancel_scope is not None:
            self._keepalive_cancel_scope.cancel()
            self._keepalive_cancel_scope = None

        if self._login_promise is not None and not self._login_promise.done:
            self._login_promise.set_error(error)

        drained = self._requests.drain_all(error)
        if drained:
            logger.warning("Failed %d pending request(s) on close", drained)

        self._fire("disconnected", error)

        if self._read_cancel_scope is not None:
            self._read_cancel_scope.cancel()
            self._read_cancel_scope = None

        with trio.CancelScope(shield=True):
            await self._connector.aclose()

        self._decoder.clear()

    async def destroy(self):
        """
        Clears the activity, waits a moment for the Discord client to see that, and then closes
        the connection.
        """
        if self.state is ConnectionState.CLOSED:
            return

        if self.state is ConnectionState.DISCONNECTED:
            self._move_to(ConnectionState.CLOSED)
            return

        if self.state is ConnectionState.READY:
            data = {
                "cmd": Command.SET_ACTIVITY.value,
                "args": {"pid": self.pid, "activity": None},
                "nonce": get_nonce()
            }
            try:
                await self._write_json(IPCOpcode.FRAME, data)
            except ConnectionIOError:
                return

            await trio.sleep(self.close_grace)

        await self._teardown(ConnectionClosed("Client destroyed"))

    # Commands
    async def send_command(self, command: Union[Command, str], args: dict = None) -> Any:
        """
        Sends a command to the Discord client and waits for the reply.

        :param command: The name of the command.
        :param args: The arguments for the command.
        :return: The ``data`` of the reply.
        :raises NotReady: If the client hasn't received READY yet. Nothing is written.
        :raises ProtocolError: If the Discord client replied with an error.
        :raises ConnectionClosed: If the connection closed before the reply arrived.
        """
        if isinstance(command, Command):
            command = command.value

        if self.state is not ConnectionState.READY:
            raise NotReady("Cannot send {} while the connection is {}"
                           .format(command, self.state.value))

        nonce = get_nonce()
        packet = IPCPacket(IPCOpcode.FRAME, {
            "cmd": command,
            "args": args if args is not None else {},
            "nonce": nonce
        })
        # raises before anything is registered if the args can't be encoded
        data = packet.serialize()

        promise = self._requests.register(nonce, command)
        try:
            logger.debug("Sending packet %r", packet)
            await self._write_bytes(data)
            return await promise.wait()
        except BaseException:
            # no-op if the request was already settled
            self._requests.discard(nonce)
            raise

    async def ping(self):
        """
        Sends a PING to the Discord client.
        """
        if self.state not in (ConnectionState.CONNECTED, ConnectionState.READY):
            raise NotReady("Cannot ping while the connection is {}".format(self.state.value))

        await self._write_json(IPCOpcode.PING, {"nonce": get_nonce()})

    async def set_activity(self, activity: Union[Activity, dict, None]) -> Any:
        """
        Sets the Rich Presence activity for this process.

        :param activity: The :class:`.Activity` to show, or None to clear it.
        :return: The activity as echoed back by the Discord client.
        """
        if isinstance(activity, Activity):
            activity = activity.to_dict()

        return await self.send_command(Command.SET_ACTIVITY, {
            "pid": self.pid,
            "activity": activity
        })

    def clear_activity(self):
        """
        Clears the Rich Presence activity for this process.
        """
        return self.set_activity(None)

    async def authorize(self, scopes: Iterable[Union[enum.Enum, str]],
                        client_id: Union[int, str] = None) -> dict:
        """
        Asks the user to authorize this application, and gets an OAuth2 authorization code.

        :param scopes: The OAuth2 scopes to ask for.
        :param client_id: The client ID to authorize. Defaults to the one this client logged in
            with.
        :return: A dict with the authorization ``code``.
        """
        scopes = [scope.value if isinstance(scope, enum.Enum) else scope for scope in scopes]
        return await self.send_command(Command.AUTHORIZE, {
            "client_id": str(client_id) if client_id is not None else self.client_id,
            "scopes": scopes
        })

    async def authenticate(self, access_token: str) -> dict:
        """
        Authenticates this connection with an OAuth2 access token.

        :return: The authentication response, containing the ``user`` and ``application``.
        """
        return await self.send_command(Command.AUTHENTICATE, {"access_token": access_token})


@asynccontextmanager
async def open_ipc_client(client_id: Union[int, str], **kwargs) -> AsyncIterator[IPCClient]:
    """
    Opens an IPC client, logs in, and destroys it on exit.

    .. code-block:: python3

        async with open_ipc_client(323578534763298816) as ipc:
            print("Logged in as", ipc.ready_event.user.username)
            await ipc.set_activity(activity)

    Errors raised while logging in are raised directly, not wrapped in an exception group.

    :param client_id: The client ID to authenticate with.
    :param kwargs: Passed to :class:`.IPCClient`.
    """
    client = IPCClient(client_id, **kwargs)
    login_error = None

    async with trio.open_nursery() as nursery:
        try:
            await client.login(nursery)
        except RichPipeError as e:
            login_error = e
        else:
            try:
                yield client
            finally:
                with trio.CancelScope(shield=True):
                    await client.destroy()

    if login_error is not None:
        raise login_error
