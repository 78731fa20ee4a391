import struct

import pytest

from richpipe.exc import DecodeError
from richpipe.ipc.packet import MAX_PAYLOAD_SIZE, IPCOpcode, IPCPacket, PacketDecoder


def test_serialize_header_layout():
    packet = IPCPacket(IPCOpcode.HANDSHAKE, {"v": 1, "client_id": "123"})
    data = packet.serialize()

    body = b'{"v":1,"client_id":"123"}'
    assert data[:4] == (0).to_bytes(4, "little")
    assert data[4:8] == len(body).to_bytes(4, "little")
    assert data[8:] == body


def test_serialize_counts_bytes_not_characters():
    packet = IPCPacket(IPCOpcode.FRAME, {"details": "café ☕"})
    data = packet.serialize()

    opcode, length = struct.unpack("<II", data[:8])
    assert opcode == 1
    assert length == len(data) - 8


@pytest.mark.parametrize("opcode", list(IPCOpcode))
def test_round_trip_every_opcode(opcode):
    payload = {"cmd": "SET_ACTIVITY", "args": {"pid": 42, "activity": None}, "nonce": "abc"}
    packet = IPCPacket(opcode, payload)

    assert IPCPacket.deserialize(packet.serialize()) == packet
    assert list(PacketDecoder().feed(packet.serialize())) == [packet]


def _stream():
    packets = [
        IPCPacket(IPCOpcode.FRAME, {"evt": "READY", "data": {"user": {"username": "alice"}}}),
        IPCPacket(IPCOpcode.PING, {"nonce": "1"}),
        IPCPacket(IPCOpcode.FRAME, {"cmd": "SET_ACTIVITY", "data": {}, "nonce": "2"}),
        IPCPacket(IPCOpcode.CLOSE, {"code": 1000, "message": "bye"}),
    ]
    return packets, b"".join(p.serialize() for p in packets)


def test_decoder_handles_one_byte_at_a_time():
    packets, data = _stream()
    decoder = PacketDecoder()

    decoded = []
    for i in range(len(data)):
        decoded.extend(decoder.feed(data[i:i + 1]))

    assert decoded == packets
    assert decoder.pending == 0


def test_decoder_handles_coalesced_packets():
    packets, data = _stream()
    decoder = PacketDecoder()

    assert list(decoder.feed(data)) == packets
    assert decoder.pending == 0


def test_decoder_handles_arbitrary_splits():
    packets, data = _stream()

    for split in (3, 8, 9, 17, len(data) - 1):
        decoder = PacketDecoder()
        decoded = list(decoder.feed(data[:split])) + list(decoder.feed(data[split:]))
        assert decoded == packets


def test_decoder_waits_for_partial_body():
    packet = IPCPacket(IPCOpcode.FRAME, {"cmd": "AUTHORIZE", "data": {"code": "xyz"}})
    data = packet.serialize()
    decoder = PacketDecoder()

    assert list(decoder.feed(data[:-1])) == []
    assert decoder.pending == len(data) - 1
    assert list(decoder.feed(data[-1:])) == [packet]


def test_decoder_rejects_oversized_length():
    decoder = PacketDecoder()
    header = struct.pack("<II", IPCOpcode.FRAME, MAX_PAYLOAD_SIZE + 1)

    with pytest.raises(DecodeError):
        list(decoder.feed(header))


def test_decoder_rejects_unknown_opcode():
    body = b"{}"
    data = struct.pack("<II", 9, len(body)) + body

    with pytest.raises(DecodeError):
        list(PacketDecoder().feed(data))


def test_decoder_rejects_invalid_json():
    body = b"{not json"
    data = struct.pack("<II", IPCOpcode.FRAME, len(body)) + body

    with pytest.raises(DecodeError):
        list(PacketDecoder().feed(data))


def test_decoder_yields_packets_before_a_bad_one():
    good = IPCPacket(IPCOpcode.PONG, {"nonce": "1"})
    bad = struct.pack("<II", IPCOpcode.FRAME, 3) + b"\xff\xfe\xfd"
    iterator = PacketDecoder().feed(good.serialize() + bad)

    assert next(iterator) == good
    with pytest.raises(DecodeError):
        next(iterator)


def test_deserialize_rejects_length_mismatch():
    data = IPCPacket(IPCOpcode.FRAME, {"a": 1}).serialize()

    with pytest.raises(DecodeError):
        IPCPacket.deserialize(data + b" ")


def test_packet_properties():
    packet = IPCPacket(IPCOpcode.FRAME, {"cmd": "DISPATCH", "evt": "READY", "nonce": None,
                                         "data": {"v": 1}})

    assert packet.cmd == "DISPATCH"
    assert packet.event == "READY"
    assert packet.nonce is None
    assert packet.data == {"v": 1}
