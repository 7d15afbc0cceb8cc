"""
Побитовый ввод/вывод поверх байтового потока.
Биты упаковываются старшим битом вперед, последний байт дополняется нулями.
"""

from typing import BinaryIO, Optional


def rewind_stream(stream: BinaryIO):
    if not stream.seekable():
        raise ValueError("Stream is not seekable, cannot rewind")
    stream.seek(0)


class BitWriter:
    def __init__(self, stream: BinaryIO):
        self.stream = stream
        self.buffer = 0
        self.count = 0
        self.bits_written = 0

    def write_bit(self, bit: int):
        self.buffer = (self.buffer << 1) | (1 if bit else 0)
        self.count += 1
        self.bits_written += 1

        if self.count == 8:
            self.stream.write(bytes([self.buffer]))
            self.buffer = 0
            self.count = 0

    def write_bits(self, code: str):
        for bit in code:
            self.write_bit(bit == '1')

    def flush(self):
        if self.count > 0:
            padding = 8 - self.count
            self.stream.write(bytes([self.buffer << padding]))
            self.buffer = 0
            self.count = 0


class BitReader:
    def __init__(self, stream: BinaryIO):
        self.stream = stream
        self.current = 0
        self.remaining = 0
        self.bits_read = 0

    def read_bit(self) -> Optional[int]:
        """Возвращает 0 или 1, либо None, если поток закончился."""
        if self.remaining == 0:
            chunk = self.stream.read(1)
            if not chunk:
                return None
            self.current = chunk[0]
            self.remaining = 8

        self.remaining -= 1
        self.bits_read += 1
        return (self.current >> self.remaining) & 1
