"""
An in-memory stand-in for the Discord client end of the IPC socket.
"""
import trio
import trio.testing

from richpipe.ipc.client import IPCClient
from richpipe.ipc.connector import IPCConnector
from richpipe.ipc.packet import IPCOpcode, IPCPacket, PacketDecoder

ENV = {"XDG_RUNTIME_DIR": "/run/user/1000"}


class FakeDiscord(object):
    def __init__(self, stream):
        self.stream = stream
        self.decoder = PacketDecoder()
        self.handshake = None
        self._packets = []

    async def receive(self) -> IPCPacket:
        while not self._packets:
            chunk = await self.stream.receive_some()
            if not chunk:
                raise EOFError("client closed the socket")

            self._packets.extend(self.decoder.feed(chunk))

        return self._packets.pop(0)

    async def send(self, opcode: IPCOpcode, data: dict):
        await self.stream.send_all(IPCPacket(opcode, data).serialize())

    async def send_raw(self, data: bytes):
        await self.stream.send_all(data)

    async def send_ready(self, user: dict = None):
        if user is None:
            user = {"id": "80351110224678912", "username": "alice", "discriminator": "0"}

        await self.send(IPCOpcode.FRAME, {
            "cmd": "DISPATCH",
            "evt": "READY",
            "data": {
                "v": 1,
                "config": {"cdn_host": "cdn.discordapp.com", "environment": "production"},
                "user": user,
            },
            "nonce": None,
        })

    async def accept_handshake(self, user: dict = None):
        self.handshake = await self.receive()
        await self.send_ready(user)

    async def reply(self, request: IPCPacket, data):
        await self.send(IPCOpcode.FRAME, {
            "cmd": request.cmd,
            "data": data,
            "evt": None,
            "nonce": request.nonce,
        })


def make_connector(stream) -> IPCConnector:
    async def opener(path):
        return stream

    return IPCConnector(opener=opener, system="Linux", environ=ENV)


def make_pipe():
    """
    Makes a connector and the fake Discord client on the other end of it.
    """
    client_stream, server_stream = trio.testing.memory_stream_pair()
    return make_connector(client_stream), FakeDiscord(server_stream)


async def login_client(nursery: trio.Nursery, **kwargs):
    """
    Makes a client and logs it in against a fake Discord client.
    """
    connector, discord = make_pipe()
    kwargs.setdefault("close_grace", 0)
    client = IPCClient("123", connector=connector, **kwargs)

    nursery.start_soon(discord.accept_handshake)
    await client.login(nursery)
    return client, discord
