"""L2CAP signalling channel: connection parameter update negotiation."""

from __future__ import annotations

import struct
from typing import Protocol

SIGNALING_CID = 0x0005

CONNECTION_PARAMETER_UPDATE_REQUEST = 0x12
CONNECTION_PARAMETER_UPDATE_RESPONSE = 0x13

PARAMETERS_ACCEPTED = 0x0000
PARAMETERS_REJECTED = 0x0001

_SIGNALING_HEADER = struct.Struct("<BBH")
_UPDATE_REQUEST = struct.Struct("<BBHHHHH")
_UPDATE_REQUEST_BODY = struct.Struct("<HHHH")
_UPDATE_RESPONSE = struct.Struct("<BBHH")


class _HostController(Protocol):
    def send_acl_pkt(self, handle: int, cid: int, data: bytes) -> int: ...

    def le_conn_update(
        self,
        handle: int,
        min_interval: int,
        max_interval: int,
        latency: int,
        supervision_timeout: int,
    ) -> int: ...


class L2CAPSignaling:
    """Enforces preferred connection parameters on the signalling channel."""

    def __init__(self, hci: _HostController) -> None:
        self._hci = hci
        self._min_interval = 0
        self._max_interval = 0
        self._supervision_timeout = 0
        self._connections: set[int] = set()

    @property
    def connections(self) -> frozenset[int]:
        """Handles of the connections currently known to the channel."""
        return frozenset(self._connections)

    def add_connection(
        self,
        handle,
        role,
        peer_bdaddr_type,
        peer_bdaddr,
        interval,
        latency,
        supervision_timeout,
        master_clock_accuracy,
    ) -> None:
        """Ask the central for preferred parameters when acting as peripheral."""
        self._connections.add(handle)
        if role != 1:
            return

        update = False
        new_min = new_max = interval
        new_timeout = supervision_timeout

        if self._min_interval and self._max_interval:
            if interval < self._min_interval or interval > self._max_interval:
                new_min, new_max = self._min_interval, self._max_interval
                update = True

        if self._supervision_timeout and supervision_timeout != self._supervision_timeout:
            new_timeout = self._supervision_timeout
            update = True

        if update:
            request = _UPDATE_REQUEST.pack(
                CONNECTION_PARAMETER_UPDATE_REQUEST,
                0x01,
                _UPDATE_REQUEST_BODY.size,
                new_min,
                new_max,
                0x0000,
                new_timeout,
            )
            self._hci.send_acl_pkt(handle, SIGNALING_CID, request)

    def handle_data(self, connection_handle, data) -> None:
        """Process one signalling PDU; malformed PDUs are ignored."""
        data = bytes(data)
        if len(data) < _SIGNALING_HEADER.size:
            return
        code, identifier, length = _SIGNALING_HEADER.unpack_from(data)
        if len(data) != _SIGNALING_HEADER.size + length:
            return
        body = data[_SIGNALING_HEADER.size :]

        if code == CONNECTION_PARAMETER_UPDATE_REQUEST:
            self._connection_parameter_update_request(connection_handle, identifier, body)
        # Responses to our own requests need no action.

    def remove_connection(self, handle, reason) -> None:
        """Forget a connection that has ended."""
        self._connections.discard(handle)

    def set_connection_interval(self, min_interval, max_interval) -> None:
        self._min_interval = min_interval
        self._max_interval = max_interval

    def set_supervision_timeout(self, supervision_timeout) -> None:
        self._supervision_timeout = supervision_timeout

    def _connection_parameter_update_request(
        self, handle: int, identifier: int, body: bytes
    ) -> None:
        if len(body) < _UPDATE_REQUEST_BODY.size:
            return
        min_interval, max_interval, latency, timeout = _UPDATE_REQUEST_BODY.unpack_from(body)

        value = PARAMETERS_ACCEPTED
        if self._min_interval and self._max_interval:
            if min_interval < self._min_interval or max_interval > self._max_interval:
                value = PARAMETERS_REJECTED
        if self._supervision_timeout and timeout != self._supervision_timeout:
            value = PARAMETERS_REJECTED

        response = _UPDATE_RESPONSE.pack(
            CONNECTION_PARAMETER_UPDATE_RESPONSE, identifier, 2, value
        )
        self._hci.send_acl_pkt(handle, SIGNALING_CID, response)

        if value == PARAMETERS_ACCEPTED:
            self._hci.le_conn_update(handle, min_interval, max_interval, latency, timeout)