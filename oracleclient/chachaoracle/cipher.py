# SPDX-License-Identifier: MIT
from .state import *
from .utils import *

__all__ = [
    "ROUNDS", "COLUMN_ROUND", "DIAGONAL_ROUND",
    "quarter_round", "double_round", "chacha20_block", "keystream",
]

ROUNDS = 20

COLUMN_ROUND = (
    (0, 4,  8, 12),
    (1, 5,  9, 13),
    (2, 6, 10, 14),
    (3, 7, 11, 15),
)

DIAGONAL_ROUND = (
    (0, 5, 10, 15),
    (1, 6, 11, 12),
    (2, 7,  8, 13),
    (3, 4,  9, 14),
)

def quarter_round(x, a, b, c, d):
    x[a] = u32(x[a] + x[b]); x[d] = rotl(x[d] ^ x[a], 16)
    x[c] = u32(x[c] + x[d]); x[b] = rotl(x[b] ^ x[c], 12)
    x[a] = u32(x[a] + x[b]); x[d] = rotl(x[d] ^ x[a], 8)
    x[c] = u32(x[c] + x[d]); x[b] = rotl(x[b] ^ x[c], 7)

def double_round(x):
    for idx in COLUMN_ROUND:
        quarter_round(x, *idx)
    for idx in DIAGONAL_ROUND:
        quarter_round(x, *idx)

def chacha20_block(state, byteorder="little"):
    """Produce one 64-byte keystream block and bump the block counter.

    Output words are serialized with `byteorder` ("little", "big" or
    "native"). The target core is little-endian, so nothing is swapped by
    default.
    """
    fmt = StateWords(byteorder)

    x = state.working_copy()
    for _ in range(ROUNDS // 2):
        double_round(x)

    out = [u32(w + s) for w, s in zip(x, state.words)]
    state.advance()
    return fmt.build(out)

def keystream(state, iterations, dest=None, byteorder="little"):
    """Run the block function `iterations` times into one 64-byte buffer.

    Each block overwrites the previous one, so only the last survives. With
    no iterations the buffer is returned untouched.
    """
    if iterations < 0:
        raise ValueError(f"Iteration count must not be negative: {iterations}")
    if dest is None:
        dest = bytearray(BLOCK_SIZE)
    elif len(dest) != BLOCK_SIZE:
        raise ValueError(f"Output buffer must be {BLOCK_SIZE} bytes, got {len(dest)}")

    for _ in range(iterations):
        dest[:] = chacha20_block(state, byteorder)

    return dest
