"""
Сжатие и распаковка файлов на диске.
"""

import os
from dataclasses import dataclass, field
from typing import Dict

from huffman_format import HeaderFormat, header_size
from huffman import PSEUDO_EOF, HuffmanTree, compress, uncompress


@dataclass
class CompressionResult:
    original_size: int
    compressed_size: int

    @property
    def ratio(self) -> float:
        if self.original_size == 0:
            return 0.0
        return self.compressed_size / self.original_size * 100


@dataclass
class ArchiveInfo:
    frequencies: Dict[int, int]
    compressed_size: int
    codes: Dict[int, str] = field(default_factory=dict)

    @property
    def original_size(self) -> int:
        return sum(count for symbol, count in self.frequencies.items()
                   if symbol != PSEUDO_EOF)

    @property
    def distinct_symbols(self) -> int:
        return len(self.frequencies) - (1 if PSEUDO_EOF in self.frequencies else 0)


def _symbol_label(symbol: int) -> str:
    if symbol == PSEUDO_EOF:
        return 'EOF'
    if 32 <= symbol < 127:
        return repr(chr(symbol))
    return f"0x{symbol:02x}"


def _ensure_distinct(input_path: str, output_path: str):
    same = os.path.realpath(input_path) == os.path.realpath(output_path)
    if not same and os.path.exists(input_path) and os.path.exists(output_path):
        same = os.path.samefile(input_path, output_path)
    if same:
        raise ValueError(f"Input and output are the same file: {input_path}")


def _transform_file(transform, input_path: str, output_path: str):
    _ensure_distinct(input_path, output_path)

    with open(input_path, 'rb') as src:
        dst = open(output_path, 'wb')
        try:
            with dst:
                return transform(src, dst)
        except BaseException:
            # недописанный результат не должен оставаться на диске
            os.remove(output_path)
            raise


class Archiver:
    def __init__(self, strict: bool = False):
        self.strict = strict

    def compress_file(self, input_path: str, output_path: str) -> CompressionResult:
        _transform_file(compress, input_path, output_path)

        result = CompressionResult(
            original_size=os.path.getsize(input_path),
            compressed_size=os.path.getsize(output_path)
        )

        print(f"Compressed {input_path} -> {output_path}: "
              f"{result.original_size} -> {result.compressed_size} bytes ({result.ratio:.1f}%)")
        return result

    def decompress_file(self, input_path: str, output_path: str) -> int:
        written = _transform_file(
            lambda src, dst: uncompress(src, dst, strict=self.strict),
            input_path, output_path)

        print(f"Uncompressed {input_path} -> {output_path}: {written} bytes")
        return written

    def describe(self, path: str) -> ArchiveInfo:
        with open(path, 'rb') as f:
            frequencies = HeaderFormat.read_header(f)

        info = ArchiveInfo(frequencies=frequencies,
                           compressed_size=os.path.getsize(path))
        if len(frequencies) > 1:
            info.codes = HuffmanTree.from_frequencies(frequencies).codes
        return info

    def print_info(self, path: str):
        info = self.describe(path)
        payload_size = info.compressed_size - header_size(info.frequencies)

        print(f"{'Symbol':<10} {'Count':>12} {'Code':<24}")
        print("-" * 48)

        for symbol, count in info.frequencies.items():
            code = info.codes.get(symbol, '')
            print(f"{_symbol_label(symbol):<10} {count:>12} {code:<24}")

        print("-" * 48)
        ratio = (info.compressed_size / info.original_size * 100) if info.original_size > 0 else 0
        print(f"Distinct symbols: {info.distinct_symbols}")
        print(f"Original size:    {info.original_size} bytes")
        print(f"Payload size:     {payload_size} bytes")
        print(f"Compressed size:  {info.compressed_size} bytes ({ratio:.1f}%)")
        return info
