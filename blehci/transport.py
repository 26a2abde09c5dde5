"""Byte transports that carry HCI packets between host and controller."""

from __future__ import annotations

import threading
import time
from abc import ABC, abstractmethod
from collections import deque
from typing import Callable, Optional, Protocol

DEFAULT_UART_BAUDRATE = 912600
SLOW_UART_BAUDRATE = 119600
RX_BUFFER_SIZE = 256


class HCITransport(ABC):
    """Interface every HCI transport provides."""

    @abstractmethod
    def begin(self) -> bool:
        """Start the transport; return True when it is ready."""

    @abstractmethod
    def end(self) -> None:
        """Stop the transport."""

    @abstractmethod
    def wait(self, timeout: int) -> None:
        """Block for up to ``timeout`` milliseconds until data is available."""

    @abstractmethod
    def available(self) -> int:
        """Number of received bytes ready to be read."""

    @abstractmethod
    def peek(self) -> Optional[int]:
        """Next received byte without consuming it, or None if there is none."""

    @abstractmethod
    def read(self) -> Optional[int]:
        """Consume and return the next received byte, or None if there is none."""

    @abstractmethod
    def write(self, data: bytes) -> int:
        """Send a complete packet (type byte first); return bytes accepted."""


class SerialPort(Protocol):
    """What a UART transport needs from the serial port it drives."""

    def begin(self, baudrate: int) -> None: ...

    def end(self) -> None: ...

    def available(self) -> int: ...

    def peek(self) -> int: ...

    def read(self) -> int: ...

    def write(self, data: bytes) -> int: ...

    def flush(self) -> None: ...


def _byte_or_none(value: Optional[int]) -> Optional[int]:
    if value is None or value < 0:
        return None
    return value


class UartTransport(HCITransport):
    """HCI transport over a serial port, using H4 framing as-is."""

    def __init__(self, uart: SerialPort, baudrate: int) -> None:
        self._uart = uart
        self._baudrate = baudrate

    @property
    def baudrate(self) -> int:
        return self._baudrate

    def begin(self) -> bool:
        self._uart.begin(self._baudrate)
        return True

    def end(self) -> None:
        self._uart.end()

    def wait(self, timeout: int) -> None:
        deadline = time.monotonic() + timeout / 1000.0
        while time.monotonic() < deadline:
            if self.available():
                break
            time.sleep(0)

    def available(self) -> int:
        return self._uart.available()

    def peek(self) -> Optional[int]:
        return _byte_or_none(self._uart.peek())

    def read(self) -> Optional[int]:
        return _byte_or_none(self._uart.read())

    def write(self, data: bytes) -> int:
        result = self._uart.write(bytes(data))
        self._uart.flush()
        return result


PacketSink = Callable[[int, bytes], int]


class BufferedTransport(HCITransport):
    """HCI transport fed by a driver callback into a fixed-size receive buffer.

    Outgoing packets are handed to ``sink(packet_type, payload)``; incoming
    data arrives through :meth:`handle_rx_data`, possibly from another thread.
    """

    def __init__(self, sink: PacketSink) -> None:
        self._sink = sink
        self._begun = False
        self._rx: deque[int] = deque()
        self._lock = threading.Lock()
        self._data_event = threading.Event()

    def begin(self) -> bool:
        with self._lock:
            self._rx.clear()
        self._begun = True
        return True

    def end(self) -> None:
        self._begun = False

    def wait(self, timeout: int) -> None:
        if self.available():
            return
        if self._data_event.wait(timeout / 1000.0):
            self._data_event.clear()

    def available(self) -> int:
        with self._lock:
            return len(self._rx)

    def peek(self) -> Optional[int]:
        with self._lock:
            return self._rx[0] if self._rx else None

    def read(self) -> Optional[int]:
        with self._lock:
            return self._rx.popleft() if self._rx else None

    def write(self, data: bytes) -> int:
        if not self._begun:
            return 0
        if not data:
            raise ValueError("packet must contain at least the packet type byte")
        packet_length = (len(data) - 1) & 0xFF
        packet_type = data[0]
        return self._sink(packet_type, bytes(data[1 : 1 + packet_length]))

    def handle_rx_data(self, data: bytes) -> None:
        """Store received bytes; the whole chunk is dropped if it does not fit."""
        with self._lock:
            if RX_BUFFER_SIZE - len(self._rx) < len(data):
                return
            self._rx.extend(data)
        self._data_event.set()