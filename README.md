# blemodem

Building blocks for the link between a host and a BLE modem. The link runs over two one-way channels. The package provides:

- the framed wire protocol,
- a bounded pool of transmit buffers,
- an asyncio transport that queues received requests and outgoing responses.

It has no dependencies outside the standard library.

## Wire format

Every frame starts with a big-endian length header and ends with a CRC-16. The length covers the whole frame, CRC included. The CRC is CRC-16/IBM-SDLC (X.25). It is computed over everything before it.

- Request (host to device): `[Length:2][Payload:N][RequestCode:2][CRC16:2]`
- Response (device to host): `[Length:2][ResponseCode:2][Payload:N][CRC16:2]`

A frame may be at most `MAX_PAYLOAD_SIZE` (249) bytes long. Anything larger raises `BufferFull`.

## Modules

### `blemodem.protocol`

- `calculate_crc16(data)` returns the checksum. `validate_crc16(data, expected_crc)` compares against it.
- `RequestCode` and `ResponseCode` are `IntEnum`s of the 16-bit codes.
- `RequestCode.from_u16(value)` returns `None` for unknown values. It also returns `None` for `REGISTER_EVENT_CALLBACK` and `CLEAR_EVENT_CALLBACKS`, which are not decoded for dispatch.
- `Packet` is a frozen dataclass with `code` and `payload`. It has:
  - `Packet.parse_request(data)` checks the length header and the CRC. It raises `InvalidLength` or `InvalidCrc`.
  - `Packet.request(code, payload)` and `Packet.response(code, payload)` build packets.
  - `serialize_request()` and `serialize()` produce request and response frames.
  - `request_code()` and `response_code()` decode the code. `response_code()` recognises `ACK`, `BLE_EVENT` and `SOC_EVENT`. For any other value it returns `None`, including `ERROR`.
- Big-endian helpers:
  - `write_u8`, `write_u16`, `write_u32` and `write_slice` append to a `bytearray` up to a capacity, then raise `BufferFull`.
  - `read_u8`, `read_u16` and `read_u32` return `None` when out of range.
- `PayloadReader` reads fields in order. It raises `InvalidData` when the data runs out. It exposes `offset` and `remaining`.

All errors derive from `ProtocolError`:

- `InvalidLength`
- `InvalidCode`
- `SerializationError`
- `BufferFull`
- `InvalidCrc`
- `InvalidData`

### `blemodem.memory`

- `TxPool(size=8)` counts the buffers handed out. It provides:
  - `acquire()` raises `PoolExhausted` when all buffers are in use.
  - `release()` gives one buffer back.
  - `available()` and `allocated()` report the counts.
- `TxPacket(data, pool=None)` holds up to `BUFFER_SIZE` (249) bytes. Larger data raises `BufferTooSmall`.
  - It takes one buffer from the pool, or from a shared default pool when no pool is given.
  - The buffer goes back on `release()`, on leaving a `with` block, or when the packet is garbage-collected.
  - It supports `len()`, `bytes()` and `is_empty()`.
- `RxBuffer` is a 249-byte receive buffer with `write`, `set_len`, `clear` and `is_empty`. Lengths out of range raise `InvalidSize`.
- `TxQueue` is a FIFO of at most 8 packets. When it is full, `enqueue` raises `PoolExhausted`. When it is empty, `dequeue` returns `None`.
- `get_stats(pool=None)` returns a `PoolStats` with the pool's allocated and available counts.

All errors derive from `BufferPoolError`.

### `blemodem.transport`

`Transport(pool=None)` owns a one-slot receive queue and an eight-slot transmit queue.

Receiving:

- `handle_received(data)` parses one transfer from the host, truncated to 256 bytes, and queues it.
  - It returns the queued `Packet`.
  - It returns `None` when the transfer is empty or malformed, or when the receive queue is full. In those cases the transfer is logged and dropped.
- `try_receive_command()` takes the next request without waiting. `receive_command()` waits for it.
- `rx_has_data()` tells whether a request is waiting.

Sending:

- `send_response(packet)` accepts any of the following and waits while the transmit queue is full:
  - a `TxPacket`,
  - a `Packet`, serialized as a response frame,
  - raw bytes.

  A pool or protocol failure is raised as `SpiError`.
- `tx_has_space()` tells whether the transmit queue has room.
- `transmit_next(write)` waits for one queued packet and passes its bytes to `write`.
  - `write` may be a plain function or a coroutine function.
  - The packet's buffer is released whatever the outcome.
  - A failing `write` is raised as `SpiError`.
- `run_tx(write)` does this forever and logs failed transfers.

## Example

```python
from blemodem.protocol import Packet, RequestCode, ResponseCode

wire = Packet.request(RequestCode.ECHO, b"hi").serialize_request()
parsed = Packet.parse_request(wire)
assert parsed.request_code() is RequestCode.ECHO
assert parsed.payload == b"hi"

reply = Packet.response(ResponseCode.ACK, b"hi").serialize()
```

```python
import asyncio
from blemodem.memory import TxPacket, TxPool
from blemodem.transport import Transport

async def demo():
    pool = TxPool(8)
    transport = Transport(pool)
    await transport.send_response(TxPacket(b"\x00\x01", pool))
    sent = []
    await transport.transmit_next(sent.append)
    return sent

print(asyncio.run(demo()))
```

## What this package does not do

- It does not drive any SPI hardware. You supply the bytes received from the host, and the `write` callable that puts outgoing frames on the wire.
- It has no command processor and no BLE stack. Requests are parsed and queued, but nothing here acts on them or produces replies to them.
- It has no command-line program.

## Running the tests

```
pip install -e ".[test]"
pytest
```