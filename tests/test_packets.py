import struct

import pytest

from blehci.packets import (
    EVT_CMD_COMPLETE,
    EVT_CMD_STATUS,
    EVT_DISCONN_COMPLETE,
    EVT_LE_ADVERTISING_REPORT,
    EVT_LE_CONN_COMPLETE,
    EVT_LE_META_EVENT,
    EVT_NUM_COMP_PKTS,
    OCF_RESET,
    OGF_HOST_CTL,
    RECV_BUFFER_SIZE,
    CommandComplete,
    CommandStatus,
    DisconnectionComplete,
    LeAdvertisingReport,
    LeConnectionComplete,
    NumCompletedPackets,
    PacketReader,
    PacketType,
    encode_acl,
    encode_command,
    format_packet,
    opcode,
    parse_event,
)

RESET = opcode(OGF_HOST_CTL, OCF_RESET)


def test_reset_opcode():
    assert RESET == 0x0C03


def test_encode_reset_command_wire_bytes():
    assert encode_command(RESET) == b"\x01\x03\x0c\x00"


def test_encode_command_header_round_trip():
    params = bytes(range(10))
    packet = encode_command(0x2006, params)
    assert struct.unpack_from("<BHB", packet) == (PacketType.COMMAND, 0x2006, len(params))
    assert packet[4:] == params


def test_encode_command_rejects_long_parameters():
    with pytest.raises(ValueError):
        encode_command(RESET, bytes(256))


def test_encode_acl_header():
    payload = b"\x01\x02\x03"
    packet = encode_acl(0x0040, 0x0005, payload)
    header = struct.unpack_from("<BHHHH", packet)
    assert header == (PacketType.ACL_DATA, 0x0040, len(payload) + 4, len(payload), 0x0005)
    assert packet[9:] == payload


def test_encode_acl_rejects_long_payload():
    with pytest.raises(ValueError):
        encode_acl(1, 4, bytes(256))


def test_reader_completes_event_on_last_byte():
    stream = bytes([PacketType.EVENT, EVT_CMD_COMPLETE, 4, 1, 3, 0x0C, 0])
    reader = PacketReader()
    results = [reader.feed(b) for b in stream]
    assert results[:-1] == [None] * (len(stream) - 1)
    packet = results[-1]
    assert packet.packet_type == PacketType.EVENT
    assert packet.payload == stream[1:]
    assert packet.raw == stream


def test_reader_reassembles_acl_packet():
    stream = encode_acl(0x0040, 0x0004, b"\xaa\xbb")
    reader = PacketReader()
    packets = [p for p in (reader.feed(b) for b in stream) if p is not None]
    assert len(packets) == 1
    assert packets[0].packet_type == PacketType.ACL_DATA
    assert packets[0].raw == stream


def test_reader_discards_unknown_byte():
    reader = PacketReader()
    assert reader.feed(0x42) is None
    assert reader.discarded == 0x42
    stream = bytes([PacketType.EVENT, EVT_CMD_STATUS, 4, 0, 1, 3, 0x0C])
    packets = [p for p in (reader.feed(b) for b in stream) if p is not None]
    assert packets[0].payload == stream[1:]


def test_reader_overflow_restarts_buffer():
    reader = PacketReader()
    header = bytes([PacketType.ACL_DATA, 0, 0, 0xFF, 0xFF])
    for b in header + bytes(RECV_BUFFER_SIZE - len(header)):
        assert reader.feed(b) is None
    assert reader.overflowed is False
    reader.feed(PacketType.EVENT)
    assert reader.overflowed is True


def test_reader_reset_drops_partial_packet():
    reader = PacketReader()
    reader.feed(PacketType.EVENT)
    reader.feed(EVT_CMD_STATUS)
    reader.reset()
    assert reader.feed(0x42) is None
    assert reader.discarded == 0x42


def test_reader_rejects_non_byte():
    with pytest.raises(ValueError):
        PacketReader().feed(256)


def test_parse_command_complete():
    data = bytes([EVT_CMD_COMPLETE, 6, 1]) + struct.pack("<H", RESET) + b"\x00\xaa\xbb"
    assert parse_event(data) == CommandComplete(1, RESET, 0, b"\xaa\xbb")


def test_parse_command_status():
    data = bytes([EVT_CMD_STATUS, 4, 0x0C, 1]) + struct.pack("<H", RESET)
    assert parse_event(data) == CommandStatus(0x0C, 1, RESET)


def test_parse_disconnection_complete():
    data = bytes([EVT_DISCONN_COMPLETE, 4, 0]) + struct.pack("<H", 0x0040) + b"\x13"
    assert parse_event(data) == DisconnectionComplete(0, 0x0040, 0x13)


def test_parse_num_completed_packets():
    body = bytes([2]) + struct.pack("<HHHH", 0x40, 3, 0x41, 1)
    data = bytes([EVT_NUM_COMP_PKTS, len(body)]) + body
    assert parse_event(data) == NumCompletedPackets(((0x40, 3), (0x41, 1)))


def test_parse_le_connection_complete():
    addr = b"\x11\x22\x33\x44\x55\x66"
    body = bytes([EVT_LE_CONN_COMPLETE]) + struct.pack(
        "<BHBB6sHHHB", 0, 0x40, 1, 0, addr, 24, 0, 400, 5
    )
    data = bytes([EVT_LE_META_EVENT, len(body)]) + body
    assert parse_event(data) == LeConnectionComplete(0, 0x40, 1, 0, addr, 24, 0, 400, 5)


def test_parse_le_advertising_report_signed_rssi():
    addr = b"\x01\x02\x03\x04\x05\x06"
    eir = b"\x05\x09test"
    body = (
        bytes([EVT_LE_ADVERTISING_REPORT, 1, 3, 0])
        + addr
        + bytes([len(eir)])
        + eir
        + struct.pack("<b", -60)
    )
    data = bytes([EVT_LE_META_EVENT, len(body)]) + body
    assert parse_event(data) == LeAdvertisingReport(1, 3, 0, addr, eir, -60)


def test_parse_unknown_event_returns_none():
    assert parse_event(bytes([0xFF, 1, 0])) is None


def test_parse_unknown_le_subevent_returns_none():
    assert parse_event(bytes([EVT_LE_META_EVENT, 1, 0x7F])) is None


def test_parse_truncated_event_raises():
    with pytest.raises(ValueError):
        parse_event(bytes([EVT_DISCONN_COMPLETE, 1, 0]))


def test_parse_too_short_raises():
    with pytest.raises(ValueError):
        parse_event(b"\x0e")


def test_format_packet():
    assert format_packet("X ", b"\x01\x0a\xff") == "X 010AFF"