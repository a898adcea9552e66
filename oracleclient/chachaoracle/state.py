# SPDX-License-Identifier: MIT
"""
chachaoracle: ChaCha20 cipher state layout

 cccccccc  cccccccc  cccccccc  cccccccc
 kkkkkkkk  kkkkkkkk  kkkkkkkk  kkkkkkkk
 kkkkkkkk  kkkkkkkk  kkkkkkkk  kkkkkkkk
 bbbbbbbb  nnnnnnnn  nnnnnnnn  nnnnnnnn

c=sigma constant, k=key, b=block counter, n=nonce
"""

from construct import Array, Int32ub, Int32ul, Int32un, Struct

from .utils import *

__all__ = [
    "SIGMA", "KEY_SIZE", "NONCE_SIZE", "BLOCK_SIZE", "STATE_WORDS",
    "COUNTER_INDEX", "WORD_FORMATS", "ChaChaKey", "ChaChaNonce",
    "StateWords", "StateBuffer", "CipherState",
]

SIGMA = (0x61707865, 0x3320646e, 0x79622d32, 0x6b206574)

KEY_SIZE = 32
NONCE_SIZE = 12
BLOCK_SIZE = 64
STATE_WORDS = 16

COUNTER_INDEX = 12

# Key and nonce words are always little-endian, whatever the host is.
ChaChaKey = Array(KEY_SIZE // 4, Int32ul)
ChaChaNonce = Array(NONCE_SIZE // 4, Int32ul)

WORD_FORMATS = {
    "little": Int32ul,
    "big": Int32ub,
    "native": Int32un,
}

def StateWords(byteorder="little"):
    try:
        word = WORD_FORMATS[byteorder]
    except KeyError:
        raise ValueError(f"Unknown byte order {byteorder!r}") from None
    return Array(STATE_WORDS, word)

StateBuffer = Struct(
    "constants" / Array(4, Int32ul),
    "key" / Array(8, Int32ul),
    "counter" / Int32ul,
    "nonce" / Array(3, Int32ul),
)

class CipherState:
    """The 16-word ChaCha20 input block.

    Constants, key and nonce are fixed at construction; only the block
    counter moves afterwards.
    """

    def __init__(self, words):
        words = list(words)
        if len(words) != STATE_WORDS:
            raise ValueError(f"State needs {STATE_WORDS} words, got {len(words)}")
        for w in words:
            if not 0 <= w <= MASK32:
                raise ValueError(f"State word out of range: {w:#x}")
        self._words = words

    @classmethod
    def from_key_nonce(cls, key, nonce, counter=1):
        if len(key) != KEY_SIZE:
            raise ValueError(f"Key must be {KEY_SIZE} bytes, got {len(key)}")
        if len(nonce) != NONCE_SIZE:
            raise ValueError(f"Nonce must be {NONCE_SIZE} bytes, got {len(nonce)}")
        words = list(SIGMA)
        words += ChaChaKey.parse(bytes(key))
        words.append(u32(counter))
        words += ChaChaNonce.parse(bytes(nonce))
        return cls(words)

    @classmethod
    def parse(cls, data):
        s = StateBuffer.parse(bytes(data))
        return cls(list(s.constants) + list(s.key) + [s.counter] + list(s.nonce))

    def build(self):
        return StateBuffer.build(dict(
            constants=self._words[0:4],
            key=self._words[4:12],
            counter=self._words[COUNTER_INDEX],
            nonce=self._words[13:16],
        ))

    @property
    def words(self):
        return tuple(self._words)

    @property
    def constants(self):
        return tuple(self._words[0:4])

    @property
    def key_words(self):
        return tuple(self._words[4:12])

    @property
    def nonce_words(self):
        return tuple(self._words[13:16])

    @property
    def counter(self):
        return self._words[COUNTER_INDEX]

    @counter.setter
    def counter(self, value):
        self._words[COUNTER_INDEX] = u32(value)

    def advance(self, count=1):
        self.counter = self.counter + count

    def working_copy(self):
        return list(self._words)

    def copy(self):
        return CipherState(self._words)

    def __len__(self):
        return STATE_WORDS

    def __getitem__(self, idx):
        return self._words[idx]

    def __eq__(self, other):
        if not isinstance(other, CipherState):
            return NotImplemented
        return self._words == other._words

    def __repr__(self):
        return "CipherState(%s)" % " ".join("%08x" % w for w in self._words)
