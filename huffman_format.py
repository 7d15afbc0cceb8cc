"""
Определяет заголовок сжатого файла: таблицу частот символов.
По заголовку декодер заново строит то же дерево Хаффмана.
"""

import struct
from typing import BinaryIO, Dict

from huffman_symbols import MAX_SYMBOL, PSEUDO_EOF


HEADER_MAGIC = b'HUFF'
HEADER_VERSION = 1

_PREFIX = struct.Struct('<4sBBH')
_ENTRY = struct.Struct('<HQ')


def header_size(frequencies: Dict[int, int]) -> int:
    return _PREFIX.size + _ENTRY.size * len(frequencies)


def _read_exact(stream: BinaryIO, size: int, what: str) -> bytes:
    data = stream.read(size)
    if len(data) != size:
        raise ValueError(f"Truncated header: cannot read {what}")
    return data


class HeaderFormat:
    @staticmethod
    def serialize(frequencies: Dict[int, int]) -> bytes:
        if not frequencies:
            raise ValueError("Frequency table is empty")
        if len(frequencies) > MAX_SYMBOL + 1:
            raise ValueError(f"Too many symbols: {len(frequencies)}")

        parts = [_PREFIX.pack(HEADER_MAGIC, HEADER_VERSION, 0, len(frequencies))]

        for symbol in sorted(frequencies):
            count = frequencies[symbol]
            if not 0 <= symbol <= MAX_SYMBOL:
                raise ValueError(f"Symbol out of range: {symbol}")
            if count <= 0:
                raise ValueError(f"Non-positive count for symbol {symbol}: {count}")
            if symbol == PSEUDO_EOF and count != 1:
                raise ValueError(f"End-of-data marker count must be 1, got {count}")
            parts.append(_ENTRY.pack(symbol, count))

        return b''.join(parts)

    @staticmethod
    def write_header(stream: BinaryIO, frequencies: Dict[int, int]) -> int:
        data = HeaderFormat.serialize(frequencies)
        stream.write(data)
        return len(data)

    @staticmethod
    def read_header(stream: BinaryIO) -> Dict[int, int]:
        magic, version, _flags, entry_count = _PREFIX.unpack(
            _read_exact(stream, _PREFIX.size, "prefix"))

        if magic != HEADER_MAGIC:
            raise ValueError("Invalid header magic")
        if version != HEADER_VERSION:
            raise ValueError(f"Unsupported version: {version}")
        if entry_count == 0 or entry_count > MAX_SYMBOL + 1:
            raise ValueError(f"Invalid entry count: {entry_count}")

        frequencies: Dict[int, int] = {}

        for _ in range(entry_count):
            symbol, count = _ENTRY.unpack(_read_exact(stream, _ENTRY.size, "entry"))

            if symbol > MAX_SYMBOL:
                raise ValueError(f"Symbol out of range: {symbol}")
            if symbol in frequencies:
                raise ValueError(f"Duplicate symbol in header: {symbol}")
            if count == 0:
                raise ValueError(f"Corrupted header: zero count for symbol {symbol}")
            if symbol == PSEUDO_EOF and count != 1:
                raise ValueError(f"Corrupted header: end-of-data marker count is {count}, expected 1")

            frequencies[symbol] = count

        return frequencies
