import pytest
from hypothesis import given, strategies as st

from blemodem.protocol import (
    MAX_PAYLOAD_SIZE,
    BufferFull,
    InvalidCrc,
    InvalidData,
    InvalidLength,
    Packet,
    PayloadReader,
    RequestCode,
    ResponseCode,
    calculate_crc16,
    read_u16,
    read_u32,
    read_u8,
    validate_crc16,
    write_slice,
    write_u16,
    write_u32,
    write_u8,
)


def test_crc16_calculation():
    crc = calculate_crc16(b"Hello, World!")
    assert crc != 0
    assert calculate_crc16(b"Hello, World!") == crc
    assert calculate_crc16(b"Hello, World?") != crc


def test_crc16_check_value():
    assert calculate_crc16(b"123456789") == 0x906E


def test_crc16_validation():
    data = b"Test message"
    crc = calculate_crc16(data)
    assert validate_crc16(data, crc)
    assert not validate_crc16(data, crc + 1)
    assert not validate_crc16(data, 0)


def test_empty_data_crc():
    crc = calculate_crc16(b"")
    assert validate_crc16(b"", crc)


@pytest.mark.parametrize(
    "data", [b"123456789", b"\x00\x01\x02\x03\x04", b"\xff\xff\xff\xff", b"A"]
)
def test_known_patterns(data):
    crc = calculate_crc16(data)
    assert validate_crc16(data, crc)
    assert not validate_crc16(data, crc ^ 0x1234)


def test_crc16_boundary_conditions():
    crc1 = calculate_crc16(bytes([0xAA] * 200))
    assert validate_crc16(bytes([0xAA] * 200), crc1)
    assert calculate_crc16(bytes([0x55] * 200)) != crc1


def test_request_code_values():
    assert RequestCode.from_u16(0x0001) is RequestCode.GET_INFO
    assert RequestCode.from_u16(0x0003) is RequestCode.ECHO
    assert RequestCode.from_u16(0x0010) is RequestCode.REGISTER_UUID_GROUP
    assert Packet.request(RequestCode.GET_INFO, b"").code == 0x0001
    assert Packet.request(RequestCode.ECHO, b"").code == 0x0003
    assert Packet.request(RequestCode.REGISTER_UUID_GROUP, b"").code == 0x0010


@pytest.mark.parametrize("code", [0xFFFF, 0x9999, 0x5555, 0x1111])
def test_invalid_request_codes(code):
    assert RequestCode.from_u16(code) is None


def test_from_u16_decodes_known_codes():
    assert RequestCode.from_u16(0x0001) is RequestCode.GET_INFO
    assert RequestCode.from_u16(0x00A5) is RequestCode.GATTC_WRITE
    assert RequestCode.from_u16(0x0004) is None
    assert RequestCode.from_u16(0x0005) is None


def test_packet_creation():
    packet = Packet.response(ResponseCode.ACK, b"Hello World")
    assert packet.payload == b"Hello World"
    assert packet.code == 0xAC50
    assert packet.response_code() is ResponseCode.ACK


def test_response_code_decoding():
    assert Packet(0x8001).response_code() is ResponseCode.BLE_EVENT
    assert Packet(0x8002).response_code() is ResponseCode.SOC_EVENT
    assert Packet(0xAC51).response_code() is None


def test_response_serialization_layout():
    frame = Packet.response(ResponseCode.ACK, b"").serialize()
    assert frame[:4] == b"\x00\x06\xac\x50"
    assert validate_crc16(frame[:4], int.from_bytes(frame[4:], "big"))


def test_request_serialization_layout():
    frame = Packet.request(RequestCode.ECHO, b"\x01\x02").serialize_request()
    assert frame[:6] == b"\x00\x08\x01\x02\x00\x03"
    assert len(frame) == 8


@given(
    st.sampled_from(
        [
            RequestCode.GET_INFO,
            RequestCode.GAP_ADV_START,
            RequestCode.GAP_ADV_STOP,
            RequestCode.GAP_GET_ADDR,
            RequestCode.GAP_SET_ADDR,
        ]
    ),
    st.binary(max_size=199),
)
def test_packet_serialization_roundtrip(code, payload):
    packet = Packet.request(code, payload)
    assert packet.code == int(code)
    assert packet.payload == payload
    parsed = Packet.parse_request(packet.serialize_request())
    assert parsed.code == int(code)
    assert parsed.payload == payload


@given(st.sampled_from(list(RequestCode)))
def test_request_code_preservation(code):
    packet = Packet.request(code, b"")
    assert packet.code == int(code)
    assert Packet.parse_request(packet.serialize_request()).code == int(code)


def test_parse_request_too_short():
    with pytest.raises(InvalidLength):
        Packet.parse_request(b"\x00\x05\x00\x01\x00")


def test_parse_request_length_mismatch():
    frame = bytearray(Packet.request(RequestCode.ECHO, b"abc").serialize_request())
    frame[1] += 1
    with pytest.raises(InvalidLength):
        Packet.parse_request(bytes(frame))


def test_parse_request_bad_crc():
    frame = bytearray(Packet.request(RequestCode.ECHO, b"abc").serialize_request())
    frame[-1] ^= 0xFF
    with pytest.raises(InvalidCrc):
        Packet.parse_request(bytes(frame))


def test_serialize_limits():
    fits = Packet.request(RequestCode.ECHO, bytes(243)).serialize_request()
    assert len(fits) == MAX_PAYLOAD_SIZE
    with pytest.raises(BufferFull):
        Packet.request(RequestCode.ECHO, bytes(244)).serialize_request()
    with pytest.raises(BufferFull):
        Packet.response(ResponseCode.ACK, bytes(244)).serialize()


def test_oversized_payload_rejected():
    with pytest.raises(BufferFull):
        Packet.request(RequestCode.ECHO, bytes(MAX_PAYLOAD_SIZE + 1))


def test_write_helpers():
    buffer = bytearray()
    write_u8(buffer, 0x42)
    write_u16(buffer, 0x1234)
    write_u32(buffer, 0xDEADBEEF)
    write_slice(buffer, b"xy")
    assert bytes(buffer) == b"\x42\x12\x34\xde\xad\xbe\xef" + b"xy"


def test_write_helper_capacity():
    buffer = bytearray(b"\x00\x00\x00")
    with pytest.raises(BufferFull):
        write_u16(buffer, 0x1234, capacity=4)
    assert bytes(buffer) == b"\x00\x00\x00"


def test_read_helpers():
    data = b"\x01\x02\x03\x04\x05"
    assert read_u8(data, 0) == 0x01
    assert read_u8(data, 5) is None
    assert read_u16(data, 3) == 0x0405
    assert read_u16(data, 4) is None
    assert read_u32(data, 1) == 0x02030405
    assert read_u32(data, 2) is None


def test_payload_reader():
    reader = PayloadReader(b"\x01\x02\x03\x04\x05\x06\x07\x08")
    assert reader.read_u8() == 0x01
    assert reader.read_u16() == 0x0203
    assert reader.read_u32() == 0x04050607
    assert reader.offset == 7
    assert reader.remaining == 1
    with pytest.raises(InvalidData):
        reader.read_u16()
    assert reader.read_slice(1) == b"\x08"
    with pytest.raises(InvalidData):
        reader.read_u8()
    assert reader.remaining == 0