import unittest
import tempfile
import os
import io
import sys
import random
import shutil
import struct
from contextlib import redirect_stdout, redirect_stderr

from bitstream import BitReader, BitWriter, rewind_stream
from huffman import (PSEUDO_EOF, DecodingError, EmptyFrequencyTableError, HuffmanTree,
                     build_code_table, build_tree, compress, compress_bytes,
                     count_frequencies, decode_data, decompress_bytes, encode_data,
                     uncompress)
from huffman_format import HeaderFormat, header_size
from archiver import Archiver
import huffpress


def tree_shape(node):
    if node.is_leaf():
        return ('leaf', node.symbol, node.weight)
    return ('node', node.weight, tree_shape(node.zero), tree_shape(node.one))


class _NonSeekable(io.RawIOBase):
    pass


class _ChangingStream(io.BytesIO):
    """Отдает другие данные после первой перемотки."""

    def __init__(self, first, second):
        super().__init__(first)
        self.second = second

    def seek(self, pos, whence=io.SEEK_SET):
        if self.second is not None:
            super().seek(0)
            self.write(self.second)
            self.second = None
        return super().seek(pos, whence)


class TestBitStream(unittest.TestCase):
    def test_write_and_read_bits(self):
        output = io.BytesIO()
        writer = BitWriter(output)
        writer.write_bits('10110')
        writer.flush()

        self.assertEqual(output.getvalue(), bytes([0b10110000]))
        self.assertEqual(writer.bits_written, 5)

        reader = BitReader(io.BytesIO(output.getvalue()))
        bits = [reader.read_bit() for _ in range(8)]
        self.assertEqual(bits, [1, 0, 1, 1, 0, 0, 0, 0])
        self.assertIsNone(reader.read_bit())

    def test_full_bytes_need_no_padding(self):
        output = io.BytesIO()
        writer = BitWriter(output)
        writer.write_bits('1111111100000001')
        writer.flush()
        self.assertEqual(output.getvalue(), b'\xff\x01')

    def test_empty_stream_reads_end(self):
        reader = BitReader(io.BytesIO(b''))
        self.assertIsNone(reader.read_bit())
        self.assertEqual(reader.bits_read, 0)

    def test_rewind(self):
        stream = io.BytesIO(b'abc')
        stream.read()
        rewind_stream(stream)
        self.assertEqual(stream.tell(), 0)

    def test_rewind_non_seekable(self):
        with self.assertRaises(ValueError):
            rewind_stream(_NonSeekable())


class TestFrequencyAnalyzer(unittest.TestCase):
    def test_counts_and_sentinel(self):
        stream = io.BytesIO(b"abca")
        frequencies = count_frequencies(stream)
        self.assertEqual(frequencies, {97: 2, 98: 1, 99: 1, PSEUDO_EOF: 1})

    def test_stream_rewound(self):
        stream = io.BytesIO(b"hello world")
        count_frequencies(stream)
        self.assertEqual(stream.tell(), 0)
        self.assertEqual(stream.read(), b"hello world")

    def test_empty_stream(self):
        self.assertEqual(count_frequencies(io.BytesIO(b"")), {PSEUDO_EOF: 1})

    def test_ascending_order(self):
        frequencies = count_frequencies(io.BytesIO(b"zyxzyx\x00"))
        self.assertEqual(list(frequencies), sorted(frequencies))


class TestTreeBuilder(unittest.TestCase):
    def test_empty_mapping_rejected(self):
        with self.assertRaises(EmptyFrequencyTableError):
            build_tree({})
        self.assertTrue(issubclass(EmptyFrequencyTableError, ValueError))

    def test_single_entry_is_leaf(self):
        root = build_tree({PSEUDO_EOF: 1})
        self.assertTrue(root.is_leaf())
        self.assertEqual(root.symbol, PSEUDO_EOF)
        self.assertEqual(build_code_table(root), {PSEUDO_EOF: ''})

    def test_symbol_out_of_range(self):
        with self.assertRaises(ValueError):
            build_tree({300: 1, PSEUDO_EOF: 1})

    def test_root_weight_is_total(self):
        frequencies = {97: 5, 98: 3, 99: 2, PSEUDO_EOF: 1}
        root = build_tree(frequencies)
        self.assertEqual(root.weight, 11)

    def test_equal_weights_ordered_by_symbol(self):
        root = build_tree({98: 1, 97: 1})
        self.assertEqual(root.zero.symbol, 97)
        self.assertEqual(root.one.symbol, 98)

    def test_deterministic(self):
        random.seed(7)
        frequencies = {symbol: random.randint(1, 4) for symbol in range(0, 256, 3)}
        frequencies[PSEUDO_EOF] = 1

        shapes = {repr(tree_shape(build_tree(dict(frequencies)))) for _ in range(5)}
        self.assertEqual(len(shapes), 1)

        reordered = dict(reversed(list(frequencies.items())))
        self.assertEqual(tree_shape(build_tree(reordered)),
                         tree_shape(build_tree(frequencies)))

    def test_internal_nodes_have_two_children(self):
        root = build_tree(count_frequencies(io.BytesIO(b"mississippi river")))
        stack = [root]
        while stack:
            node = stack.pop()
            if node.is_leaf():
                continue
            self.assertIsNotNone(node.zero)
            self.assertIsNotNone(node.one)
            stack.extend([node.zero, node.one])


class TestCodeTable(unittest.TestCase):
    def test_aaaab_code_lengths(self):
        frequencies = count_frequencies(io.BytesIO(b"aaaab"))
        tree = HuffmanTree.from_frequencies(frequencies)

        a, b, eof = tree.codes[ord('a')], tree.codes[ord('b')], tree.codes[PSEUDO_EOF]
        self.assertLessEqual(len(a), len(b))
        self.assertLessEqual(len(b), len(eof))
        self.assertEqual(tree.codes, {ord('a'): '1', ord('b'): '00', PSEUDO_EOF: '01'})

    def test_prefix_free(self):
        random.seed(42)
        data = bytes(random.choice(b"aaaaabbbccde\x00\xff") for _ in range(2000))
        tree = HuffmanTree.from_frequencies(count_frequencies(io.BytesIO(data)))

        codes = list(tree.codes.values())
        for i, first in enumerate(codes):
            for j, second in enumerate(codes):
                if i != j:
                    self.assertFalse(second.startswith(first),
                                     f"{first!r} is a prefix of {second!r}")

    def test_one_entry_per_leaf(self):
        frequencies = count_frequencies(io.BytesIO(bytes(range(256))))
        tree = HuffmanTree.from_frequencies(frequencies)
        self.assertEqual(set(tree.codes), set(frequencies))
        self.assertEqual(tree.max_code_length(), max(len(c) for c in tree.codes.values()))

    def test_unknown_symbol(self):
        tree = HuffmanTree.from_frequencies({97: 1, PSEUDO_EOF: 1})
        with self.assertRaises(ValueError):
            tree.code(98)


class TestEncoderDecoder(unittest.TestCase):
    def _encode(self, data, tree):
        output = io.BytesIO()
        writer = BitWriter(output)
        encode_data(io.BytesIO(data), tree, writer)
        writer.flush()
        return output.getvalue(), writer.bits_written

    def test_encode_decode(self):
        data = b"abracadabra"
        tree = HuffmanTree.from_frequencies(count_frequencies(io.BytesIO(data)))
        payload, bits = self._encode(data, tree)

        expected_bits = sum(len(tree.codes[b]) for b in data) + len(tree.codes[PSEUDO_EOF])
        self.assertEqual(bits, expected_bits)

        output = io.BytesIO()
        written = decode_data(BitReader(io.BytesIO(payload)), tree, output)
        self.assertEqual(output.getvalue(), data)
        self.assertEqual(written, len(data))

    def test_encoder_reads_from_start(self):
        data = b"banana"
        tree = HuffmanTree.from_frequencies(count_frequencies(io.BytesIO(data)))
        stream = io.BytesIO(data)
        stream.read()

        output = io.BytesIO()
        writer = BitWriter(output)
        encode_data(stream, tree, writer)
        writer.flush()
        self.assertEqual(output.getvalue(), self._encode(data, tree)[0])

    def test_symbol_missing_from_tree(self):
        tree = HuffmanTree.from_frequencies({97: 1, PSEUDO_EOF: 1})
        with self.assertRaises(ValueError):
            self._encode(b"b", tree)

    def test_sentinel_never_emitted(self):
        data = b"xyz" * 5
        tree = HuffmanTree.from_frequencies(count_frequencies(io.BytesIO(data)))
        payload, _ = self._encode(data, tree)

        # лишние биты после маркера конца не декодируются
        output = io.BytesIO()
        decode_data(BitReader(io.BytesIO(payload + b'\x00\x00')), tree, output)
        self.assertEqual(output.getvalue(), data)

    def test_lone_sentinel_leaf(self):
        tree = HuffmanTree.from_frequencies({PSEUDO_EOF: 1})
        output = io.BytesIO()
        self.assertEqual(decode_data(BitReader(io.BytesIO(b'')), tree, output), 0)
        self.assertEqual(output.getvalue(), b'')

    def test_lone_symbol_leaf_uses_weight(self):
        tree = HuffmanTree.from_frequencies({ord('x'): 5})
        self.assertEqual(tree.codes, {ord('x'): ''})

        output = io.BytesIO()
        written = decode_data(BitReader(io.BytesIO(b'')), tree, output)
        self.assertEqual(output.getvalue(), b"xxxxx")
        self.assertEqual(written, 5)

    def test_truncated_strict(self):
        data = b"hello hello hello"
        tree = HuffmanTree.from_frequencies(count_frequencies(io.BytesIO(data)))
        payload, _ = self._encode(data, tree)

        with self.assertRaises(DecodingError):
            decode_data(BitReader(io.BytesIO(payload[:-1])), tree, io.BytesIO(), strict=True)

    def test_truncated_lenient(self):
        data = b"hello hello hello"
        tree = HuffmanTree.from_frequencies(count_frequencies(io.BytesIO(data)))
        payload, _ = self._encode(data, tree)

        output = io.BytesIO()
        with self.assertLogs('huffman', level='WARNING'):
            decode_data(BitReader(io.BytesIO(payload[:-1])), tree, output)

        self.assertTrue(data.startswith(output.getvalue()))
        self.assertLess(len(output.getvalue()), len(data))


class TestCompression(unittest.TestCase):
    def assertRoundTrip(self, data):
        compressed = compress_bytes(data)
        self.assertEqual(decompress_bytes(compressed), data)
        self.assertEqual(decompress_bytes(compressed, strict=True), data)
        return compressed

    def test_round_trip(self):
        samples = [
            b"a",
            b"ab",
            b"aaaab",
            b"The quick brown fox jumps over the lazy dog",
            bytes(range(256)) * 3,
            b"Lorem ipsum dolor sit amet " * 200,
        ]
        for data in samples:
            with self.subTest(data=data[:20]):
                self.assertRoundTrip(data)

    def test_random_data(self):
        random.seed(1234)
        data = bytes(random.getrandbits(8) for _ in range(10 * 1024))
        self.assertRoundTrip(data)

    def test_empty_input(self):
        compressed = self.assertRoundTrip(b"")
        self.assertEqual(compressed, HeaderFormat.serialize({PSEUDO_EOF: 1}))

    def test_single_repeated_symbol(self):
        data = b"a" * 1000
        compressed = self.assertRoundTrip(data)

        frequencies = HeaderFormat.read_header(io.BytesIO(compressed))
        self.assertEqual(frequencies, {ord('a'): 1000, PSEUDO_EOF: 1})
        # 1000 однобитных кодов и один бит маркера конца
        self.assertEqual(len(compressed), header_size(frequencies) + 126)

    def test_compresses_skewed_data(self):
        data = b"a" * 5000 + b"b" * 100 + b"c" * 10
        compressed = self.assertRoundTrip(data)
        self.assertLess(len(compressed), len(data))

    def test_compress_returns_payload_bits(self):
        output = io.BytesIO()
        bits = compress(io.BytesIO(b"aaaab"), output)
        # a=1, b=00, EOF=01
        self.assertEqual(bits, 4 * 1 + 2 + 2)

    def test_truncated_payload_strict(self):
        data = b"The quick brown fox jumps over the lazy dog" * 3
        compressed = compress_bytes(data)

        with self.assertRaises(DecodingError):
            decompress_bytes(compressed[:-1], strict=True)

        partial = decompress_bytes(compressed[:-1])
        self.assertTrue(data.startswith(partial))

    def test_header_without_sentinel(self):
        compressed = HeaderFormat.serialize({97: 3, 98: 1}) + b'\x00'
        with self.assertRaises(ValueError):
            uncompress(io.BytesIO(compressed), io.BytesIO())

    def test_truncated_header(self):
        compressed = compress_bytes(b"hello")
        with self.assertRaises(ValueError):
            decompress_bytes(compressed[:10])

    def test_bad_magic(self):
        compressed = compress_bytes(b"hello")
        with self.assertRaises(ValueError):
            decompress_bytes(b"NOPE" + compressed[4:])

    def test_failed_encode_writes_no_padding(self):
        output = io.BytesIO()
        with self.assertRaises(ValueError):
            compress(_ChangingStream(b"aaa", b"aab"), output)

        self.assertEqual(output.getvalue(), HeaderFormat.serialize({ord('a'): 3, PSEUDO_EOF: 1}))


class TestHeaderFormat(unittest.TestCase):
    def test_write_and_read(self):
        frequencies = {PSEUDO_EOF: 1, 200: 7, 10: 3}
        stream = io.BytesIO()
        size = HeaderFormat.write_header(stream, frequencies)
        self.assertEqual(size, header_size(frequencies))

        stream.seek(0)
        read = HeaderFormat.read_header(stream)
        self.assertEqual(read, frequencies)
        self.assertEqual(list(read), [10, 200, PSEUDO_EOF])

    def test_serialize_empty(self):
        with self.assertRaises(ValueError):
            HeaderFormat.serialize({})

    def test_serialize_invalid_symbol(self):
        with self.assertRaises(ValueError):
            HeaderFormat.serialize({257: 1})

    def test_unsupported_version(self):
        data = bytearray(HeaderFormat.serialize({PSEUDO_EOF: 1}))
        data[4] = 99
        with self.assertRaises(ValueError):
            HeaderFormat.read_header(io.BytesIO(bytes(data)))

    def test_duplicate_symbol(self):
        data = struct.pack('<4sBBH', b'HUFF', 1, 0, 2) + struct.pack('<HQ', 97, 1) * 2
        with self.assertRaises(ValueError):
            HeaderFormat.read_header(io.BytesIO(data))

    def test_symbol_out_of_range(self):
        data = struct.pack('<4sBBH', b'HUFF', 1, 0, 1) + struct.pack('<HQ', 300, 1)
        with self.assertRaises(ValueError):
            HeaderFormat.read_header(io.BytesIO(data))

    def test_zero_entries(self):
        data = struct.pack('<4sBBH', b'HUFF', 1, 0, 0)
        with self.assertRaises(ValueError):
            HeaderFormat.read_header(io.BytesIO(data))

    def test_sentinel_count_must_be_one(self):
        data = struct.pack('<4sBBH', b'HUFF', 1, 0, 2) + struct.pack('<HQ', 97, 3) + \
            struct.pack('<HQ', PSEUDO_EOF, 5)
        with self.assertRaisesRegex(ValueError, "Corrupted header"):
            HeaderFormat.read_header(io.BytesIO(data))

        with self.assertRaises(ValueError):
            HeaderFormat.serialize({97: 3, PSEUDO_EOF: 5})


class TestArchiver(unittest.TestCase):
    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.archiver = Archiver()

    def tearDown(self):
        if os.path.exists(self.temp_dir):
            shutil.rmtree(self.temp_dir)

    def _path(self, name):
        return os.path.join(self.temp_dir, name)

    def _write(self, name, data):
        path = self._path(name)
        with open(path, 'wb') as f:
            f.write(data)
        return path

    def test_compress_decompress_file(self):
        data = b"Hello World! " * 100
        source = self._write("test.txt", data)

        with redirect_stdout(io.StringIO()):
            result = self.archiver.compress_file(source, self._path("test.huf"))
            written = self.archiver.decompress_file(self._path("test.huf"), self._path("out.txt"))

        self.assertEqual(result.original_size, len(data))
        self.assertLess(result.compressed_size, result.original_size)
        self.assertLess(result.ratio, 100)
        self.assertEqual(written, len(data))

        with open(self._path("out.txt"), 'rb') as f:
            self.assertEqual(f.read(), data)

    def test_empty_file(self):
        source = self._write("empty.txt", b"")

        with redirect_stdout(io.StringIO()):
            result = self.archiver.compress_file(source, self._path("empty.huf"))
            written = self.archiver.decompress_file(self._path("empty.huf"), self._path("out.txt"))

        self.assertEqual(result.ratio, 0.0)
        self.assertEqual(written, 0)
        self.assertEqual(os.path.getsize(self._path("out.txt")), 0)

    def test_describe(self):
        source = self._write("test.txt", b"aaaab")
        with redirect_stdout(io.StringIO()):
            self.archiver.compress_file(source, self._path("test.huf"))

        info = self.archiver.describe(self._path("test.huf"))
        self.assertEqual(info.original_size, 5)
        self.assertEqual(info.distinct_symbols, 2)
        self.assertEqual(info.codes[ord('a')], '1')

        buffer = io.StringIO()
        with redirect_stdout(buffer):
            self.archiver.print_info(self._path("test.huf"))
        self.assertIn("EOF", buffer.getvalue())
        self.assertIn("'a'", buffer.getvalue())

    def test_strict_archiver(self):
        random.seed(99)
        data = bytes(random.getrandbits(8) for _ in range(200000))
        source = self._write("test.bin", data)
        with redirect_stdout(io.StringIO()):
            self.archiver.compress_file(source, self._path("test.huf"))

        with open(self._path("test.huf"), 'rb') as f:
            compressed = f.read()
        truncated = self._write("truncated.huf", compressed[:-10])

        with self.assertRaises(DecodingError):
            Archiver(strict=True).decompress_file(truncated, self._path("out.bin"))

        self.assertFalse(os.path.exists(self._path("out.bin")))

    def test_failed_decompress_removes_output(self):
        bogus = self._write("bogus.huf", b"not a huffman file")

        with self.assertRaises(ValueError):
            self.archiver.decompress_file(bogus, self._path("out.txt"))

        self.assertFalse(os.path.exists(self._path("out.txt")))

    def test_same_input_and_output(self):
        data = b"important data " * 10
        source = self._write("data.txt", data)

        with self.assertRaises(ValueError):
            self.archiver.compress_file(source, source)
        with self.assertRaises(ValueError):
            self.archiver.decompress_file(source, os.path.join(self.temp_dir, ".", "data.txt"))

        with open(source, 'rb') as f:
            self.assertEqual(f.read(), data)


class TestCommandLine(unittest.TestCase):
    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    def _run(self, *argv):
        with redirect_stdout(io.StringIO()), redirect_stderr(io.StringIO()) as err:
            code = huffpress.main(list(argv))
        return code, err.getvalue()

    def test_compress_uncompress(self):
        source = os.path.join(self.temp_dir, "input.bin")
        packed = os.path.join(self.temp_dir, "input.huf")
        unpacked = os.path.join(self.temp_dir, "output.bin")
        data = bytes(range(256)) * 4 + b"tail"

        with open(source, 'wb') as f:
            f.write(data)

        self.assertEqual(self._run('compress', source, '-o', packed)[0], 0)
        self.assertEqual(self._run('uncompress', packed, '-o', unpacked, '--strict')[0], 0)
        self.assertEqual(self._run('info', packed)[0], 0)

        with open(unpacked, 'rb') as f:
            self.assertEqual(f.read(), data)

    def test_missing_file(self):
        code, err = self._run('compress', os.path.join(self.temp_dir, "nope"),
                              '-o', os.path.join(self.temp_dir, "out.huf"))
        self.assertEqual(code, 1)
        self.assertIn("Error:", err)

    def test_invalid_archive(self):
        bogus = os.path.join(self.temp_dir, "bogus.huf")
        with open(bogus, 'wb') as f:
            f.write(b"not a huffman file")

        code, err = self._run('uncompress', bogus, '-o', os.path.join(self.temp_dir, "out"))
        self.assertEqual(code, 1)
        self.assertIn("magic", err)

    def test_no_command(self):
        self.assertEqual(self._run()[0], 0)


def run_tests():
    loader = unittest.TestLoader()
    suite = unittest.TestSuite()

    suite.addTests(loader.loadTestsFromTestCase(TestBitStream))
    suite.addTests(loader.loadTestsFromTestCase(TestFrequencyAnalyzer))
    suite.addTests(loader.loadTestsFromTestCase(TestTreeBuilder))
    suite.addTests(loader.loadTestsFromTestCase(TestCodeTable))
    suite.addTests(loader.loadTestsFromTestCase(TestEncoderDecoder))
    suite.addTests(loader.loadTestsFromTestCase(TestCompression))
    suite.addTests(loader.loadTestsFromTestCase(TestHeaderFormat))
    suite.addTests(loader.loadTestsFromTestCase(TestArchiver))
    suite.addTests(loader.loadTestsFromTestCase(TestCommandLine))

    runner = unittest.TextTestRunner(verbosity=2)
    result = runner.run(suite)

    return 0 if result.wasSuccessful() else 1


if __name__ == '__main__':
    sys.exit(run_tests())
