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
Represents a Discord IPC packet, and the decoder that pulls packets out of a byte stream.

.. currentmodule:: richpipe.ipc.packet
"""
import enum
import json
import struct
from typing import Iterator, Optional

from richpipe.exc import DecodeError

HEADER = struct.Struct("<II")

#: The largest payload accepted from the peer. This matches the frame limit of the native client.
MAX_PAYLOAD_SIZE = 64 * 1024


class IPCOpcode(enum.IntEnum):
    """
    Represents an IPC opcode.
    """
    HANDSHAKE = 0
    FRAME = 1
    CLOSE = 2
    PING = 3
    PONG = 4


class IPCPacket(object):
    """
    Represents an IPC packet.
    """
    __slots__ = "opcode", "_json_data"

    def __init__(self, opcode: IPCOpcode, data: Optional[dict]):
        """
        :param opcode: The :class:`.IPCOpcode` for this packet.
        :param data: A dict of data enclosed in this packet.
        """
        self.opcode = IPCOpcode(opcode)
        self._json_data = data if data is not None else {}

    def __repr__(self) -> str:
        return "<IPCPacket opcode={} data={!r}>".format(self.opcode.name, self._json_data)

    def __eq__(self, other) -> bool:
        if not isinstance(other, IPCPacket):
            return NotImplemented

        return self.opcode == other.opcode and self._json_data == other._json_data

    @staticmethod
    def _pack_json(data: dict) -> str:
        """
        Packs JSON in a compact representation.

        :param data: The data to pack.
        """
        return json.dumps(data, indent=None, separators=(',', ':'))

    # properties
    @property
    def json(self) -> dict:
        """
        Gets the full body of this packet.
        """
        return self._json_data

    @property
    def event(self) -> Optional[str]:
        """
        Gets the event for this packet. Received packets only.
        """
        return self._json_data.get("evt")

    @property
    def cmd(self) -> Optional[str]:
        """
        Gets the command for this packet.
        """
        return self._json_data.get("cmd")

    @property
    def nonce(self) -> Optional[str]:
        """
        Gets the nonce for this packet.
        """
        return self._json_data.get("nonce")

    @property
    def data(self):
        """
        Gets the inner data for this packet.
        """
        return self._json_data.get("data")

    def serialize(self) -> bytes:
        """
        Serializes this packet into a series of bytes.
        """
        body = self._pack_json(self._json_data).encode("utf-8")
        # both header fields are little endian, unlike most network protocols
        return HEADER.pack(self.opcode, len(body)) + body

    @classmethod
    def deserialize(cls, data: bytes) -> 'IPCPacket':
        """
        Deserializes a full packet.

        This method is not usually what you want; use a :class:`.PacketDecoder` on a stream.
        """
        if len(data) < HEADER.size:
            raise DecodeError("Packet is shorter than its header")

        opcode, length = HEADER.unpack_from(data)
        body = data[HEADER.size:]

        if len(body) != length:
            raise DecodeError("Got invalid length: header says {}, body is {}"
                              .format(length, len(body)))

        return cls._from_parts(opcode, body)

    @classmethod
    def _from_parts(cls, opcode: int, body: bytes) -> 'IPCPacket':
        try:
            opcode = IPCOpcode(opcode)
        except ValueError as e:
            raise DecodeError("Unknown opcode {}".format(opcode)) from e

        try:
            decoded = json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            raise DecodeError("Packet body is not valid JSON") from e

        if decoded is not None and not isinstance(decoded, dict):
            raise DecodeError("Packet body must be an object, not {}"
                              .format(type(decoded).__name__))

        return cls(opcode, decoded)


class PacketDecoder(object):
    """
    Splits a stream of bytes into :class:`.IPCPacket` objects.

    Data can arrive in any shape: a packet may be split over several reads, and one read may
    contain several packets. Anything that doesn't yet make up a full packet is kept until the
    next call to :meth:`.feed`.
    """

    def __init__(self, max_payload_size: int = MAX_PAYLOAD_SIZE):
        self.max_payload_size = max_payload_size
        self._buffer = bytearray()

    @property
    def pending(self) -> int:
        """
        :return: The number of bytes buffered that haven't made up a full packet yet.
        """
        return len(self._buffer)

    def clear(self):
        self._buffer.clear()

    def feed(self, chunk: bytes) -> Iterator[IPCPacket]:
        """
        Feeds some data into this decoder.

        The chunk is buffered straight away; the returned iterator then yields every packet that
        is now complete, in order. A malformed packet raises :class:`.DecodeError` from the
        iterator once every packet before it has been yielded.

        :param chunk: The bytes that were just read off of the socket.
        """
        self._buffer.extend(chunk)
        return self._drain()

    def _drain(self) -> Iterator[IPCPacket]:
        while len(self._buffer) >= HEADER.size:
            opcode, length = HEADER.unpack_from(self._buffer)
            if length > self.max_payload_size:
                raise DecodeError("Payload length {} exceeds the maximum of {}"
                                  .format(length, self.max_payload_size))

            end = HEADER.size + length
            if len(self._buffer) < end:
                # partial packet, wait for the rest
                break

            body = bytes(self._buffer[HEADER.size:end])
            del self._buffer[:end]
            yield IPCPacket._from_parts(opcode, body)
