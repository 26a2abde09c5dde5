# blehci

Pure-Python building blocks for a Bluetooth Low Energy host controller
interface (HCI). The package includes:

- Builders for HCI command and ACL data packets.
- A reassembler that turns an incoming byte stream back into whole packets.
- Decoders for the controller events a BLE host cares about.
- Byte transports to carry the packets.
- L2CAP signaling that negotiates connection parameters.

The package does not touch Bluetooth hardware. A transport wraps whatever
object actually moves the bytes.

## Installation

```
pip install blehci
```

## Modules

### `blehci.packets`: the wire format

- `opcode(ogf, ocf)` combines an opcode group and a command field into a
  16-bit opcode.
- `encode_command(opcode, parameters)` builds a complete command packet,
  type byte included. It raises `ValueError` if the parameters are longer
  than 255 bytes.
- `encode_acl(handle, cid, payload)` builds an ACL data packet that carries
  one L2CAP frame. It raises `ValueError` if the payload is longer than 255
  bytes.
- `PacketReader` takes bytes one at a time through `feed(byte)`:
  - When a byte completes an ACL data or event packet, `feed` returns that
    packet as a `RawPacket`.
  - After each call, `overflowed` tells whether the 258-byte buffer had to
    be restarted.
  - After each call, `discarded` holds a byte that began no known packet
    type.
  - `reset()` drops any partial packet.
- `parse_event(data)` decodes an event packet given without its type byte.
  - It returns one of `CommandComplete`, `CommandStatus`,
    `DisconnectionComplete`, `NumCompletedPackets`, `LeConnectionComplete`
    or `LeAdvertisingReport`.
  - It returns `None` for events it does not handle.
  - It raises `ValueError` for truncated events.
- `format_packet(prefix, data)` renders bytes as the prefix followed by
  upper-case hex.
- `PacketType` enumerates the packet type bytes: `COMMAND`, `ACL_DATA` and
  `EVENT`.

### `blehci.transport`: byte transports

`HCITransport` is the interface. It has these methods:

- `begin`
- `end`
- `wait(timeout_ms)`
- `available`
- `peek`
- `read`
- `write(packet)`

There are two implementations.

`UartTransport(uart, baudrate)` drives a serial-port-like object. That
object must provide:

- `begin(baudrate)`
- `end`
- `available`
- `peek`
- `read`
- `write`
- `flush`

`BufferedTransport(sink)` works in both directions:

- Outgoing packets go to `sink(packet_type, payload)`.
- Incoming bytes arrive through `handle_rx_data(data)`. This method may be
  called from another thread.
- Received bytes are held in a 256-byte buffer. A chunk that does not fit is
  dropped whole.
- `write` returns 0 until `begin()` has been called.

### `blehci.l2cap`: signaling channel

`L2CAPSignaling(hci)` answers connection-parameter update requests.

- It can enforce a preferred interval range through
  `set_connection_interval`.
- It can enforce a supervision timeout through `set_supervision_timeout`.
- Requests outside these limits get a reject response. Accepted requests are
  followed by a call to `hci.le_conn_update(...)`.
- If the local device is the peripheral (role 1), `add_connection` sends its
  own update request when the connection's parameters fall outside the
  limits.

The `hci` argument is any object that provides
`send_acl_pkt(handle, cid, data)` and
`le_conn_update(handle, min_interval, max_interval, latency, supervision_timeout)`.

## Example

```python
from blehci.packets import PacketReader, encode_command, opcode, parse_event
from blehci.transport import BufferedTransport

sent = []

def sink(packet_type, payload):
    sent.append((packet_type, payload))
    return len(payload)

transport = BufferedTransport(sink)
transport.begin()

# HCI_Reset: OGF 0x03, OCF 0x0003
transport.write(encode_command(opcode(0x03, 0x0003)))
print(sent[0])  # (1, b'\x03\x0c\x00')

# The controller answers with a Command Complete event.
transport.handle_rx_data(bytes.fromhex("040e0401030c00"))

reader = PacketReader()
while transport.available():
    packet = reader.feed(transport.read())
    if packet is not None:
        print(parse_event(packet.payload))
# CommandComplete(ncmd=1, opcode=3075, status=0, return_parameters=b'')
```

## What this package does not do

The package has no controller driver. Nothing in it does any of the
following:

- Send commands and wait for their completion.
- Keep track of controller buffer credits.
- Hand decoded events and ACL data to ATT, GAP or L2CAP on its own.

Those steps are left to the caller. To build them:

1. Write packets with a transport.
2. Feed the received bytes to a `PacketReader`.
3. Decode events with `parse_event`.
4. Pass signaling-channel payloads to `L2CAPSignaling.handle_data`.

There is also no command-line tool.