"""
Командная строка для компрессора Хаффмана.
"""

import argparse
import logging
import sys

from archiver import Archiver


def main(argv=None):
    parser = argparse.ArgumentParser(
        description='Huffman file compressor',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python huffpress.py compress file.txt -o file.huf
  python huffpress.py uncompress file.huf -o file.txt
  python huffpress.py info file.huf
        """
    )
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable debug logging')

    subparsers = parser.add_subparsers(dest='command', help='Command')

    compress_parser = subparsers.add_parser('compress', help='Compress a file')
    compress_parser.add_argument('input', help='File to compress')
    compress_parser.add_argument('-o', '--output', required=True, help='Compressed file path')

    uncompress_parser = subparsers.add_parser('uncompress', help='Uncompress a file')
    uncompress_parser.add_argument('input', help='Compressed file')
    uncompress_parser.add_argument('-o', '--output', required=True, help='Output file path')
    uncompress_parser.add_argument('--strict', action='store_true',
                                   help='Fail on truncated payload instead of stopping early')

    info_parser = subparsers.add_parser('info', help='Show frequency table and codes')
    info_parser.add_argument('input', help='Compressed file')

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )

    if not args.command:
        parser.print_help()
        return 0

    archiver = Archiver(strict=getattr(args, 'strict', False))

    try:
        if args.command == 'compress':
            archiver.compress_file(args.input, args.output)

        elif args.command == 'uncompress':
            archiver.decompress_file(args.input, args.output)

        elif args.command == 'info':
            archiver.print_info(args.input)

    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
