"""
Surveyor — world/codec.py
Scan Map Codec: boolean coverage grid <-> compact text.
=======================================================
Version:     0.2  (Phase 2 — canonical implementation)
Stack:       Python 3.14.3 | NumPy
Status:      Production-ready. Must stay able to read every older save.

Grammar (decode precedence, top wins)
-------------------------------------
  legacy-literal   exactly width*height characters, each '0' or '1';
                   one character per cell, row-major. Oldest saves.
  sentinel         "X" alone; every cell true.
  run-length-hex   <count-hex>,<char>,<count-hex>,<char>...   (contains ',')
  flat-hex         <char><char>...; each char packs 4 cells, MSB first.

The order is a contract: checking the delimiter or sentinel before the
legacy length test silently corrupts old data.

Encoding always produces either the sentinel (all cells true) or
run-length-hex. Bits are flattened row-major (every column of row 0, then
row 1, ...) and the final nibble is padded with zero bits.
"""

from __future__ import annotations

import itertools
import logging
from typing import Dict

import numpy as np

logger = logging.getLogger(__name__)

TAG_FULL_COVERAGE: str = "X"
RUN_DELIMITER: str = ","
HEX_TABLE: str = "0123456789ABCDEF"
BITS_PER_CHAR: int = 4

_HEX_VALUES: Dict[str, int] = {c: i for i, c in enumerate(HEX_TABLE)}
_HEX_VALUES.update({c.lower(): i for i, c in enumerate(HEX_TABLE) if c.isalpha()})
_NIBBLE_WEIGHTS = np.array([8, 4, 2, 1], dtype=np.uint8)
_NIBBLE_SHIFTS = np.array([3, 2, 1, 0], dtype=np.uint8)


# ============================================================
# ENCODE
# ============================================================

def pack_hex(bits: np.ndarray) -> str:
    """Packs a flat bool vector into hex characters, zero-padding the last nibble."""
    bits = np.asarray(bits, dtype=np.uint8).reshape(-1)
    pad = (-bits.size) % BITS_PER_CHAR
    if pad:
        bits = np.concatenate([bits, np.zeros(pad, dtype=np.uint8)])
    nibbles = bits.reshape(-1, BITS_PER_CHAR) @ _NIBBLE_WEIGHTS
    return "".join(HEX_TABLE[n] for n in nibbles)


def compress_runs(stream: str) -> str:
    """Run-length encodes a character stream as `count,char` pairs (count in hex)."""
    return RUN_DELIMITER.join(
        f"{sum(1 for _ in run):X}{RUN_DELIMITER}{char}"
        for char, run in itertools.groupby(stream)
    )


def encode_scan_map(mask: np.ndarray) -> str:
    """Serializes a [col, row] bool grid to text."""
    mask = np.asarray(mask, dtype=bool)
    if mask.all():
        return TAG_FULL_COVERAGE

    # [col, row] -> row-major bitstream
    return compress_runs(pack_hex(mask.T.reshape(-1)))


# ============================================================
# DECODE
# ============================================================

def is_legacy_literal(text: str, width: int, height: int) -> bool:
    return len(text) == width * height and set(text) <= {"0", "1"}


def expand_runs(text: str, limit: int) -> str:
    """
    Expands `count,char` pairs back to a flat stream.
    Stops at the first malformed pair, or once `limit` characters exist.
    """
    tokens = text.split(RUN_DELIMITER)
    if len(tokens) % 2:
        logger.error("Run-length scan data has a dangling token; ignoring %r", tokens[-1])

    parts = []
    produced = 0
    for count_token, char in zip(tokens[0::2], tokens[1::2]):
        try:
            count = int(count_token, 16)
        except ValueError:
            logger.error("Run-length scan data has a bad count %r; truncating", count_token)
            break
        if len(char) != 1 or count < 0:
            logger.error("Run-length scan data has a bad run %r,%r; truncating", count_token, char)
            break

        count = min(count, limit - produced)
        parts.append(char * count)
        produced += count
        if produced >= limit:
            break

    return "".join(parts)


def unpack_hex(stream: str, n_bits: int) -> np.ndarray:
    """Unpacks hex characters to a flat bool vector of exactly n_bits."""
    stream = stream[: -(-n_bits // BITS_PER_CHAR)]
    values = np.zeros(len(stream), dtype=np.uint8)
    bad = 0
    for i, char in enumerate(stream):
        value = _HEX_VALUES.get(char)
        if value is None:
            bad += 1
            value = 0
        values[i] = value
    if bad:
        logger.error("Scan data contained %d non-hex character(s); read as empty cells", bad)

    bits = ((values[:, None] >> _NIBBLE_SHIFTS) & 1).astype(bool).reshape(-1)
    if bits.size < n_bits:
        logger.error("Scan data truncated: %d of %d cells present; padding with empty cells", bits.size, n_bits)
        bits = np.concatenate([bits, np.zeros(n_bits - bits.size, dtype=bool)])
    return bits[:n_bits]


def decode_scan_map(text: str, width: int, height: int) -> np.ndarray:
    """Deserializes text to a [col, row] bool grid of shape (width, height)."""
    n_cells = width * height
    if not text:
        logger.error("Scan data is empty; grid reset")
        return np.zeros((width, height), dtype=bool)

    if is_legacy_literal(text, width, height):
        flat = np.frombuffer(text.encode("ascii"), dtype=np.uint8) == ord("1")
    elif text == TAG_FULL_COVERAGE:
        return np.ones((width, height), dtype=bool)
    elif RUN_DELIMITER in text:
        flat = unpack_hex(expand_runs(text, -(-n_cells // BITS_PER_CHAR)), n_cells)
    else:
        flat = unpack_hex(text, n_cells)

    # row-major bitstream -> [col, row]
    return np.ascontiguousarray(flat.reshape(height, width).T)
