"""
Реализует сжатие без потерь кодированием Хаффмана.
Первый проход считает частоты байтов, второй кодирует данные.
Конец данных обозначается отдельным символом PSEUDO_EOF.
"""

import heapq
import io
import logging
from collections import Counter
from typing import BinaryIO, Dict, Optional

from bitstream import BitReader, BitWriter, rewind_stream
from huffman_format import HeaderFormat
from huffman_symbols import PSEUDO_EOF


logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


class EmptyFrequencyTableError(ValueError):
    pass


class DecodingError(ValueError):
    pass


class HuffmanNode:
    def __init__(self, symbol: Optional[int] = None, weight: int = 0, order: int = 0,
                 zero: Optional['HuffmanNode'] = None,
                 one: Optional['HuffmanNode'] = None):
        self.symbol = symbol
        self.weight = weight
        self.order = order
        self.zero = zero
        self.one = one

    def is_leaf(self) -> bool:
        return self.zero is None and self.one is None

    def __lt__(self, other):
        return (self.weight, self.order) < (other.weight, other.order)

    def __repr__(self):
        if self.is_leaf():
            return f"Leaf(symbol={self.symbol}, weight={self.weight})"
        return f"Node(weight={self.weight}, order={self.order})"


def count_frequencies(stream: BinaryIO) -> Dict[int, int]:
    """Считает частоты байтов и добавляет PSEUDO_EOF с частотой 1.

    Поток читается до конца и затем перематывается в начало,
    чтобы кодировщик мог прочитать его повторно.
    """
    counter = Counter()
    for chunk in iter(lambda: stream.read(CHUNK_SIZE), b''):
        counter.update(chunk)

    frequencies = {symbol: counter[symbol] for symbol in sorted(counter)}
    frequencies[PSEUDO_EOF] = 1

    rewind_stream(stream)
    return frequencies


def build_tree(frequencies: Dict[int, int]) -> HuffmanNode:
    """Строит дерево Хаффмана по таблице частот.

    Узлы с равным весом упорядочиваются по ``order``: листья получают
    номер по возрастанию символа, внутренние узлы - по порядку создания.
    Поэтому одна и та же таблица всегда дает одно и то же дерево.
    """
    if not frequencies:
        raise EmptyFrequencyTableError("Cannot build Huffman tree from empty frequency table")

    heap = []
    for order, symbol in enumerate(sorted(frequencies)):
        weight = frequencies[symbol]
        if not 0 <= symbol <= PSEUDO_EOF:
            raise ValueError(f"Symbol out of range: {symbol}")
        if weight < 0:
            raise ValueError(f"Negative weight for symbol {symbol}: {weight}")
        heap.append(HuffmanNode(symbol=symbol, weight=weight, order=order))

    heapq.heapify(heap)
    next_order = len(heap)

    while len(heap) > 1:
        zero = heapq.heappop(heap)
        one = heapq.heappop(heap)

        parent = HuffmanNode(weight=zero.weight + one.weight, order=next_order,
                             zero=zero, one=one)
        next_order += 1
        heapq.heappush(heap, parent)

    return heap[0]


def build_code_table(root: HuffmanNode) -> Dict[int, str]:
    codes: Dict[int, str] = {}
    stack = [(root, '')]

    while stack:
        node, path = stack.pop()

        if node.is_leaf():
            codes[node.symbol] = path
            continue

        # one-ветка кладется первой, чтобы zero-ветка обходилась раньше
        stack.append((node.one, path + '1'))
        stack.append((node.zero, path + '0'))

    return codes


class HuffmanTree:
    def __init__(self, root: HuffmanNode):
        self.root = root
        self.codes = build_code_table(root)

    @classmethod
    def from_frequencies(cls, frequencies: Dict[int, int]) -> 'HuffmanTree':
        tree = cls(build_tree(frequencies))
        logger.debug("Built Huffman tree: %d leaves, max code length %d",
                     len(tree.codes), tree.max_code_length())
        return tree

    def max_code_length(self) -> int:
        return max(len(code) for code in self.codes.values())

    def code(self, symbol: int) -> str:
        try:
            return self.codes[symbol]
        except KeyError:
            raise ValueError(f"Symbol not in code table: {symbol}") from None


def encode_data(stream: BinaryIO, tree: HuffmanTree, writer: BitWriter):
    rewind_stream(stream)
    codes = tree.codes

    for chunk in iter(lambda: stream.read(CHUNK_SIZE), b''):
        for byte in chunk:
            code = codes.get(byte)
            if code is None:
                raise ValueError(f"Symbol not in code table: {byte}")
            writer.write_bits(code)

    writer.write_bits(tree.code(PSEUDO_EOF))


def _write_repeated(output: BinaryIO, symbol: int, count: int) -> int:
    block = bytes([symbol]) * min(count, CHUNK_SIZE)
    remaining = count
    while remaining > 0:
        size = min(remaining, len(block))
        output.write(block[:size])
        remaining -= size
    return count


def decode_data(reader: BitReader, tree: HuffmanTree, output: BinaryIO,
                strict: bool = False) -> int:
    """Декодирует биты из reader, пока не встретится PSEUDO_EOF.

    Если биты закончились раньше, в строгом режиме поднимается
    DecodingError, иначе конец потока считается концом данных.
    Возвращает число записанных байтов.
    """
    root = tree.root

    if root.is_leaf():
        if root.symbol == PSEUDO_EOF:
            return 0
        # единственный символ не требует битов, его вес - число повторов
        return _write_repeated(output, root.symbol, root.weight)

    buffer = bytearray()
    written = 0
    node = root

    while True:
        if node.is_leaf():
            if node.symbol == PSEUDO_EOF:
                break

            buffer.append(node.symbol)
            if len(buffer) >= CHUNK_SIZE:
                output.write(buffer)
                written += len(buffer)
                buffer.clear()

            node = root
            continue

        bit = reader.read_bit()

        if bit is None:
            if strict:
                raise DecodingError(
                    f"Payload ended after {reader.bits_read} bits without end-of-data marker")
            logger.warning("Payload ended after %d bits without end-of-data marker, "
                           "treating as end of data", reader.bits_read)
            break

        node = node.one if bit else node.zero

    output.write(buffer)
    written += len(buffer)
    return written


def compress(input_stream: BinaryIO, output_stream: BinaryIO) -> int:
    """Сжимает input_stream в output_stream. Возвращает число бит полезной нагрузки."""
    frequencies = count_frequencies(input_stream)
    HeaderFormat.write_header(output_stream, frequencies)

    tree = HuffmanTree.from_frequencies(frequencies)

    writer = BitWriter(output_stream)
    encode_data(input_stream, tree, writer)
    writer.flush()

    logger.debug("Encoded %d payload bits", writer.bits_written)
    return writer.bits_written


def uncompress(input_stream: BinaryIO, output_stream: BinaryIO, strict: bool = False) -> int:
    frequencies = HeaderFormat.read_header(input_stream)

    if PSEUDO_EOF not in frequencies:
        raise ValueError("Header has no end-of-data marker")

    if len(frequencies) == 1:
        return 0

    tree = HuffmanTree.from_frequencies(frequencies)
    reader = BitReader(input_stream)

    return decode_data(reader, tree, output_stream, strict=strict)


def compress_bytes(data: bytes) -> bytes:
    output = io.BytesIO()
    compress(io.BytesIO(data), output)
    return output.getvalue()


def decompress_bytes(data: bytes, strict: bool = False) -> bytes:
    output = io.BytesIO()
    uncompress(io.BytesIO(data), output, strict=strict)
    return output.getvalue()
