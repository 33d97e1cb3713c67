import io

import pytest

from .cursor import Cursor
from .errors import TruncationError


def test_little_endian_integers():
    data = bytes.fromhex('0100' 'feff' '78563412' 'ffffffff' '0100000000000000' 'ffffffffffffffff')
    cursor = Cursor.from_bytes(data)
    assert cursor.read_uint16() == 1
    assert cursor.read_int16() == -2
    assert cursor.read_uint32() == 0x12345678
    assert cursor.read_int32() == -1
    assert cursor.read_uint64() == 1
    assert cursor.read_int64() == -1
    assert cursor.remaining() == 0


def test_read_past_end_fails_and_keeps_position():
    cursor = Cursor.from_bytes(b'\x01\x02\x03')
    cursor.read_uint8()
    with pytest.raises(TruncationError) as exc_info:
        cursor.read_uint32()
    assert exc_info.value.needed == 4
    assert exc_info.value.available == 2
    assert exc_info.value.position == 1
    assert cursor.tell() == 1
    assert cursor.read_bytes(2) == b'\x02\x03'


def test_peek_does_not_advance():
    cursor = Cursor.from_bytes(b'\xaa\xbb\xcc')
    assert cursor.peek(2) == b'\xaa\xbb'
    assert cursor.tell() == 0
    with pytest.raises(TruncationError):
        cursor.peek(4)
    assert cursor.tell() == 0


def test_seek_absolute_and_relative():
    cursor = Cursor.from_bytes(bytes(range(10)))
    cursor.seek(4)
    assert cursor.read_uint8() == 4
    cursor.seek(2, io.SEEK_CUR)
    assert cursor.read_uint8() == 7
    cursor.seek(-1, io.SEEK_END)
    assert cursor.read_uint8() == 9
    assert cursor.size() == 10


def test_xor_key_applies_by_absolute_position():
    key = bytes([0x11, 0x22, 0x33])
    plain = bytes(range(8))
    obfuscated = bytes(b ^ key[i % len(key)] for i, b in enumerate(plain))
    cursor = Cursor.from_bytes(obfuscated, xor_key=key)
    assert cursor.read_bytes(2) == plain[:2]
    cursor.seek(5)
    assert cursor.read_bytes(3) == plain[5:]


def test_zero_length_xor_key_is_ignored():
    cursor = Cursor.from_bytes(b'\x05', xor_key=b'')
    assert cursor.read_uint8() == 5


@pytest.mark.parametrize("length", [2 ** 64 - 1, 2 ** 40])
def test_huge_read_on_file_is_truncation(tmp_path, length):
    path = tmp_path / "data.bin"
    path.write_bytes(b'\x01\x02\x03')
    with open(path, 'rb') as f:
        cursor = Cursor(f)
        cursor.read_uint8()
        with pytest.raises(TruncationError) as exc_info:
            cursor.read_bytes(length)
        assert exc_info.value.needed == length
        assert exc_info.value.available == 2
        assert cursor.tell() == 1
        assert cursor.read_bytes(2) == b'\x02\x03'
