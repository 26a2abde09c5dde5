"""HCI packet framing, encoding and event decoding."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import Optional, Tuple, Union


class PacketType(IntEnum):
    COMMAND = 0x01
    ACL_DATA = 0x02
    EVENT = 0x04


EVT_DISCONN_COMPLETE = 0x05
EVT_CMD_COMPLETE = 0x0E
EVT_CMD_STATUS = 0x0F
EVT_NUM_COMP_PKTS = 0x13
EVT_LE_META_EVENT = 0x3E

EVT_LE_CONN_COMPLETE = 0x01
EVT_LE_ADVERTISING_REPORT = 0x02

OGF_LINK_CTL = 0x01
OGF_HOST_CTL = 0x03
OGF_INFO_PARAM = 0x04
OGF_STATUS_PARAM = 0x05
OGF_LE_CTL = 0x08

OCF_DISCONNECT = 0x0006
OCF_SET_EVENT_MASK = 0x0001
OCF_RESET = 0x0003
OCF_READ_LOCAL_VERSION = 0x0001
OCF_READ_BD_ADDR = 0x0009
OCF_READ_RSSI = 0x0005
OCF_LE_READ_BUFFER_SIZE = 0x0002
OCF_LE_SET_RANDOM_ADDRESS = 0x0005
OCF_LE_SET_ADVERTISING_PARAMETERS = 0x0006
OCF_LE_SET_ADVERTISING_DATA = 0x0008
OCF_LE_SET_SCAN_RESPONSE_DATA = 0x0009
OCF_LE_SET_ADVERTISE_ENABLE = 0x000A
OCF_LE_SET_SCAN_PARAMETERS = 0x000B
OCF_LE_SET_SCAN_ENABLE = 0x000C
OCF_LE_CREATE_CONN = 0x000D
OCF_LE_CANCEL_CONN = 0x000E
OCF_LE_CONN_UPDATE = 0x0013

HCI_OE_USER_ENDED_CONNECTION = 0x13

RECV_BUFFER_SIZE = 3 + 255

_COMMAND_HEADER = struct.Struct("<BHB")
_ACL_HEADER = struct.Struct("<BHHHH")


def opcode(ogf: int, ocf: int) -> int:
    """Combine an opcode group and command field into a 16-bit opcode."""
    return ((ogf << 10) | ocf) & 0xFFFF


def encode_command(opcode: int, parameters: bytes = b"") -> bytes:
    """Build a complete command packet, type byte included."""
    parameters = bytes(parameters)
    if len(parameters) > 0xFF:
        raise ValueError("command parameters exceed 255 bytes")
    return _COMMAND_HEADER.pack(PacketType.COMMAND, opcode, len(parameters)) + parameters


def encode_acl(handle: int, cid: int, payload: bytes) -> bytes:
    """Build a complete ACL data packet carrying one L2CAP frame."""
    payload = bytes(payload)
    if len(payload) > 0xFF:
        raise ValueError("ACL payload exceeds 255 bytes")
    dlen = (len(payload) + 4) & 0xFF
    return _ACL_HEADER.pack(PacketType.ACL_DATA, handle, dlen, len(payload), cid) + payload


@dataclass(frozen=True)
class RawPacket:
    """A framed packet: its type and the bytes after the type byte."""

    packet_type: PacketType
    payload: bytes

    @property
    def raw(self) -> bytes:
        return bytes([self.packet_type]) + self.payload


class PacketReader:
    """Reassembles ACL data and event packets from a byte stream.

    After each :meth:`feed`, ``overflowed`` tells whether the buffer had to be
    restarted and ``discarded`` holds a byte that began no known packet.
    """

    def __init__(self) -> None:
        self._buffer = bytearray()
        self.overflowed = False
        self.discarded: Optional[int] = None

    def reset(self) -> None:
        self._buffer.clear()

    def feed(self, byte: int) -> Optional[RawPacket]:
        """Add one byte; return the packet it completes, if any."""
        if not 0 <= byte <= 0xFF:
            raise ValueError(f"not a byte: {byte}")
        self.overflowed = False
        self.discarded = None

        if len(self._buffer) >= RECV_BUFFER_SIZE:
            self._buffer.clear()
            self.overflowed = True

        buf = self._buffer
        buf.append(byte)
        count = len(buf)

        if buf[0] == PacketType.ACL_DATA:
            if count > 5 and count >= 5 + (buf[3] | (buf[4] << 8)):
                return self._take(PacketType.ACL_DATA)
        elif buf[0] == PacketType.EVENT:
            if count > 3 and count >= 3 + buf[2]:
                return self._take(PacketType.EVENT)
        else:
            buf.clear()
            self.discarded = byte
        return None

    def _take(self, packet_type: PacketType) -> RawPacket:
        packet = RawPacket(packet_type, bytes(self._buffer[1:]))
        self._buffer.clear()
        return packet


@dataclass(frozen=True)
class CommandComplete:
    ncmd: int
    opcode: int
    status: int
    return_parameters: bytes


@dataclass(frozen=True)
class CommandStatus:
    status: int
    ncmd: int
    opcode: int


@dataclass(frozen=True)
class DisconnectionComplete:
    status: int
    handle: int
    reason: int


@dataclass(frozen=True)
class NumCompletedPackets:
    completed: Tuple[Tuple[int, int], ...]


@dataclass(frozen=True)
class LeConnectionComplete:
    status: int
    handle: int
    role: int
    peer_bdaddr_type: int
    peer_bdaddr: bytes
    interval: int
    latency: int
    supervision_timeout: int
    master_clock_accuracy: int


@dataclass(frozen=True)
class LeAdvertisingReport:
    num_reports: int
    adv_type: int
    peer_bdaddr_type: int
    peer_bdaddr: bytes
    eir_data: bytes
    rssi: int


Event = Union[
    CommandComplete,
    CommandStatus,
    DisconnectionComplete,
    NumCompletedPackets,
    LeConnectionComplete,
    LeAdvertisingReport,
]


def parse_event(data: bytes) -> Optional[Event]:
    """Decode an event packet (without its type byte); None if not handled."""
    data = bytes(data)
    if len(data) < 2:
        raise ValueError("event packet shorter than its header")
    try:
        return _parse_event(data)
    except (struct.error, IndexError) as exc:
        raise ValueError(f"truncated event 0x{data[0]:02x}") from exc


def _parse_event(data: bytes) -> Optional[Event]:
    evt = data[0]
    params = data[2:]

    if evt == EVT_DISCONN_COMPLETE:
        status, handle, reason = struct.unpack_from("<BHB", params)
        return DisconnectionComplete(status, handle, reason)

    if evt == EVT_CMD_COMPLETE:
        ncmd, op, status = struct.unpack_from("<BHB", params)
        return CommandComplete(ncmd, op, status, data[6 : 2 + data[1]])

    if evt == EVT_CMD_STATUS:
        status, ncmd, op = struct.unpack_from("<BBH", params)
        return CommandStatus(status, ncmd, op)

    if evt == EVT_NUM_COMP_PKTS:
        count = params[0]
        values = struct.unpack_from("<" + "HH" * count, params, 1)
        pairs = tuple(zip(values[0::2], values[1::2]))
        return NumCompletedPackets(pairs)

    if evt == EVT_LE_META_EVENT:
        subevent = params[0]
        body = params[1:]
        if subevent == EVT_LE_CONN_COMPLETE:
            fields = struct.unpack_from("<BHBB6sHHHB", body)
            return LeConnectionComplete(*fields)
        if subevent == EVT_LE_ADVERTISING_REPORT:
            num, adv_type, addr_type, addr, eir_length = struct.unpack_from("<BBB6sB", body)
            eir_start = 10
            eir_data = body[eir_start : eir_start + eir_length]
            if len(eir_data) != eir_length:
                raise IndexError("advertising data truncated")
            (rssi,) = struct.unpack_from("<b", body, eir_start + eir_length)
            return LeAdvertisingReport(num, adv_type, addr_type, addr, eir_data, rssi)

    return None


def format_packet(prefix: str, data: bytes) -> str:
    """Render a packet as the prefix followed by upper-case hex bytes."""
    return prefix + "".join(f"{b:02X}" for b in data)