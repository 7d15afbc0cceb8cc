"""
Алфавит кодировщика: 256 значений байта и маркер конца данных.
"""

BYTE_SYMBOLS = 256

# маркер конца данных лежит за пределами диапазона байтов
PSEUDO_EOF = BYTE_SYMBOLS
MAX_SYMBOL = PSEUDO_EOF
