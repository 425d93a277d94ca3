"""Wire protocol between the host and the BLE modem.

Request frames:  [Length:2][Payload:N][RequestCode:2][CRC16:2]
Response frames: [Length:2][ResponseCode:2][Payload:N][CRC16:2]

All multi-byte fields are big-endian. The CRC is CRC-16/IBM-SDLC computed
over everything that precedes it.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Optional

MAX_PAYLOAD_SIZE = 247 + 2
"""Largest frame or payload the modem handles (BLE_EVT_LEN_MAX + 2)."""

_MIN_REQUEST_LENGTH = 6  # length(2) + code(2) + crc(2)


class ProtocolError(Exception):
    """Base class for protocol failures."""


class InvalidLength(ProtocolError):
    """The frame is too short or its length header does not match."""


class InvalidCode(ProtocolError):
    """The frame carries an unknown code."""


class SerializationError(ProtocolError):
    """A value could not be serialized."""


class BufferFull(ProtocolError):
    """The data does not fit into the available capacity."""


class InvalidCrc(ProtocolError):
    """The frame's CRC does not match its contents."""


class InvalidData(ProtocolError):
    """The payload ended before the requested field."""


def _build_crc_table() -> tuple[int, ...]:
    table = []
    for byte in range(256):
        crc = byte
        for _ in range(8):
            crc = (crc >> 1) ^ 0x8408 if crc & 1 else crc >> 1
        table.append(crc)
    return tuple(table)


_CRC_TABLE = _build_crc_table()


def calculate_crc16(data: bytes) -> int:
    """Return the CRC-16/IBM-SDLC checksum of ``data``."""
    crc = 0xFFFF
    for byte in data:
        crc = (crc >> 8) ^ _CRC_TABLE[(crc ^ byte) & 0xFF]
    return crc ^ 0xFFFF


def validate_crc16(data: bytes, expected_crc: int) -> bool:
    """Return True if ``data`` has the checksum ``expected_crc``."""
    return calculate_crc16(data) == expected_crc


class RequestCode(IntEnum):
    """Codes of requests sent by the host."""

    # System commands
    GET_INFO = 0x0001
    SHUTDOWN = 0x0002
    ECHO = 0x0003
    REBOOT = 0x00F0

    # Event management
    REGISTER_EVENT_CALLBACK = 0x0004
    CLEAR_EVENT_CALLBACKS = 0x0005

    # UUID management
    REGISTER_UUID_GROUP = 0x0010

    # GAP: address management
    GAP_GET_ADDR = 0x0011
    GAP_SET_ADDR = 0x0012

    # GAP: advertising control
    GAP_ADV_START = 0x0020
    GAP_ADV_STOP = 0x0021
    GAP_ADV_SET_CONFIGURE = 0x0022

    # GAP: device configuration
    GAP_GET_NAME = 0x0023
    GAP_SET_NAME = 0x0024
    GAP_CONN_PARAMS_GET = 0x0025
    GAP_CONN_PARAMS_SET = 0x0026

    # GAP: connection management
    GAP_CONN_PARAM_UPDATE = 0x0027
    GAP_DATA_LENGTH_UPDATE = 0x0028
    GAP_PHY_UPDATE = 0x0029
    GAP_CONNECT = 0x002A
    GAP_CONNECT_CANCEL = 0x002B
    GAP_DISCONNECT = 0x002C

    # GAP: power and RSSI
    GAP_SET_TX_POWER = 0x002D
    GAP_START_RSSI_REPORTING = 0x002E
    GAP_STOP_RSSI_REPORTING = 0x002F

    # GAP: scanning
    GAP_SCAN_START = 0x0030
    GAP_SCAN_STOP = 0x0031

    # GATT server
    GATTS_SERVICE_ADD = 0x0080
    GATTS_CHARACTERISTIC_ADD = 0x0081
    GATTS_MTU_REPLY = 0x0082
    GATTS_HVX = 0x0083
    GATTS_SYS_ATTR_GET = 0x0084
    GATTS_SYS_ATTR_SET = 0x0085

    # GATT client
    GATTC_MTU_REQUEST = 0x00A0
    GATTC_SERVICE_DISCOVER = 0x00A1
    GATTC_CHARACTERISTICS_DISCOVER = 0x00A2
    GATTC_DESCRIPTORS_DISCOVER = 0x00A3
    GATTC_READ = 0x00A4
    GATTC_WRITE = 0x00A5

    @classmethod
    def from_u16(cls, value: int) -> Optional["RequestCode"]:
        """Decode a raw request code; None if it is not a dispatchable command."""
        if value in _UNDECODED_REQUESTS:
            return None
        try:
            return cls(value)
        except ValueError:
            return None


# Event-callback codes exist on the wire but are not decoded for dispatch.
_UNDECODED_REQUESTS = frozenset(
    {RequestCode.REGISTER_EVENT_CALLBACK, RequestCode.CLEAR_EVENT_CALLBACKS}
)


class ResponseCode(IntEnum):
    """Codes of frames sent by the device."""

    ACK = 0xAC50
    ERROR = 0xAC51
    BLE_EVENT = 0x8001
    SOC_EVENT = 0x8002


_DECODED_RESPONSES = {
    ResponseCode.ACK.value: ResponseCode.ACK,
    ResponseCode.BLE_EVENT.value: ResponseCode.BLE_EVENT,
    ResponseCode.SOC_EVENT.value: ResponseCode.SOC_EVENT,
}


def _checked_payload(payload: bytes) -> bytes:
    payload = bytes(payload)
    if len(payload) > MAX_PAYLOAD_SIZE:
        raise BufferFull(f"payload of {len(payload)} bytes exceeds {MAX_PAYLOAD_SIZE}")
    return payload


@dataclass(frozen=True)
class Packet:
    """A protocol frame: a 16-bit code and its payload."""

    code: int
    payload: bytes = b""

    @classmethod
    def parse_request(cls, data: bytes) -> "Packet":
        """Parse a received request frame, checking its length and CRC."""
        data = bytes(data)
        if len(data) < _MIN_REQUEST_LENGTH:
            raise InvalidLength(f"frame of {len(data)} bytes is too short")

        length = int.from_bytes(data[:2], "big")
        if length != len(data):
            raise InvalidLength(f"length header {length} does not match frame size {len(data)}")

        crc_offset = len(data) - 2
        received_crc = int.from_bytes(data[crc_offset:], "big")
        if not validate_crc16(data[:crc_offset], received_crc):
            raise InvalidCrc(f"CRC mismatch (received {received_crc:#06x})")

        code_offset = crc_offset - 2
        code = int.from_bytes(data[code_offset:crc_offset], "big")
        return cls(code, _checked_payload(data[2:code_offset]))

    @classmethod
    def response(cls, code: ResponseCode, payload: bytes = b"") -> "Packet":
        """Build a response frame."""
        return cls(int(code), _checked_payload(payload))

    @classmethod
    def request(cls, code: RequestCode, payload: bytes = b"") -> "Packet":
        """Build a request frame for sending to the device."""
        return cls(int(code), _checked_payload(payload))

    def _frame(self, body: bytes) -> bytes:
        total_length = 2 + len(body) + 2
        if total_length > MAX_PAYLOAD_SIZE:
            raise BufferFull(f"frame of {total_length} bytes exceeds {MAX_PAYLOAD_SIZE}")
        message = total_length.to_bytes(2, "big") + body
        return message + calculate_crc16(message).to_bytes(2, "big")

    def serialize_request(self) -> bytes:
        """Encode as a request frame: length, payload, code, CRC."""
        return self._frame(self.payload + self.code.to_bytes(2, "big"))

    def serialize(self) -> bytes:
        """Encode as a response frame: length, code, payload, CRC."""
        return self._frame(self.code.to_bytes(2, "big") + self.payload)

    def request_code(self) -> Optional[RequestCode]:
        """The decoded request code, if any."""
        return RequestCode.from_u16(self.code)

    def response_code(self) -> Optional[ResponseCode]:
        """The decoded response code, if any."""
        return _DECODED_RESPONSES.get(self.code)


def _extend(buffer: bytearray, chunk: bytes, capacity: int) -> None:
    if len(buffer) + len(chunk) > capacity:
        raise BufferFull(f"buffer capacity of {capacity} bytes exceeded")
    buffer.extend(chunk)


def write_u8(buffer: bytearray, value: int, capacity: int = MAX_PAYLOAD_SIZE) -> None:
    """Append one byte to ``buffer``."""
    _extend(buffer, value.to_bytes(1, "big"), capacity)


def write_u16(buffer: bytearray, value: int, capacity: int = MAX_PAYLOAD_SIZE) -> None:
    """Append a big-endian 16-bit value to ``buffer``."""
    _extend(buffer, value.to_bytes(2, "big"), capacity)


def write_u32(buffer: bytearray, value: int, capacity: int = MAX_PAYLOAD_SIZE) -> None:
    """Append a big-endian 32-bit value to ``buffer``."""
    _extend(buffer, value.to_bytes(4, "big"), capacity)


def write_slice(buffer: bytearray, data: bytes, capacity: int = MAX_PAYLOAD_SIZE) -> None:
    """Append raw bytes to ``buffer``."""
    _extend(buffer, bytes(data), capacity)


def _read(data: bytes, offset: int, size: int) -> Optional[int]:
    if offset < 0 or len(data) < offset + size:
        return None
    return int.from_bytes(data[offset:offset + size], "big")


def read_u8(data: bytes, offset: int) -> Optional[int]:
    """Byte at ``offset``, or None if out of range."""
    return _read(data, offset, 1)


def read_u16(data: bytes, offset: int) -> Optional[int]:
    """Big-endian 16-bit value at ``offset``, or None if out of range."""
    return _read(data, offset, 2)


def read_u32(data: bytes, offset: int) -> Optional[int]:
    """Big-endian 32-bit value at ``offset``, or None if out of range."""
    return _read(data, offset, 4)


class PayloadReader:
    """Reads big-endian fields from a payload one after another."""

    def __init__(self, data: bytes) -> None:
        self._data = bytes(data)
        self._offset = 0

    def _take(self, size: int) -> bytes:
        if size < 0 or self._offset + size > len(self._data):
            raise InvalidData(
                f"need {size} bytes at offset {self._offset}, have {self.remaining}"
            )
        chunk = self._data[self._offset:self._offset + size]
        self._offset += size
        return chunk

    def read_u8(self) -> int:
        return self._take(1)[0]

    def read_u16(self) -> int:
        return int.from_bytes(self._take(2), "big")

    def read_u32(self) -> int:
        return int.from_bytes(self._take(4), "big")

    def read_slice(self, length: int) -> bytes:
        return self._take(length)

    @property
    def offset(self) -> int:
        """Number of bytes consumed so far."""
        return self._offset

    @property
    def remaining(self) -> int:
        """Number of bytes not yet consumed."""
        return len(self._data) - self._offset