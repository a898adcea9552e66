# SPDX-License-Identifier: MIT
import struct

__all__ = [
    "MASK32", "u32", "rotl", "rotr",
    "hexdump", "hexdump32", "chexdump", "chexdiff32", "unhex",
]

MASK32 = 0xFFFFFFFF

def u32(v):
    return v & MASK32

def rotl(v, r, width=32):
    mask = (1 << width) - 1
    r %= width
    v &= mask
    return ((v << r) | (v >> (width - r))) & mask

def rotr(v, r, width=32):
    return rotl(v, width - (r % width), width)

def hexdump(s, sep=" "):
    return sep.join(["%02x"%x for x in s])

def hexdump32(s, sep=" "):
    vals = struct.unpack("<%dI" % (len(s)//4), s)
    return sep.join(["%08x"%x for x in vals])

def unhex(s):
    s = "".join(s.split())
    return bytes.fromhex(s)

def _ascii(s):
    s2 = ""
    for c in s:
        if c < 0x20 or c > 0x7e:
            s2 += "."
        else:
            s2 += chr(c)
    return s2

def chexdump(s, st=0, abbreviate=True, stride=16, indent="", print_fn=print):
    last = None
    skip = False
    for i in range(0,len(s),stride):
        val = s[i:i+stride]
        if val == last and abbreviate:
            if not skip:
                print_fn(indent+"%08x  *" % (i + st))
                skip = True
        else:
            print_fn(indent+"%08x  %s  |%s|" % (
                i + st,
                "  ".join(hexdump(val[j:j+8], ' ').ljust(23)
                          for j in range(0, stride, 8)),
                _ascii(val).ljust(stride)))
            last = val
            skip = False

def chexdiff32(prev, cur, ascii=True):
    """Word-wise diff of two equal-length buffers, changed nibbles highlighted.

    Only rows that differ are printed.
    """
    assert len(cur) % 4 == 0 and len(prev) == len(cur)
    count = len(cur) // 4
    words = struct.unpack("<%dI" % count, cur)
    last = struct.unpack("<%dI" % count, prev)

    row = 8
    out = []
    for i in range(0, count, row):
        if last[i:i+row] != words[i:i+row]:
            out.append(f"{i * 4:08x} ")
            for old, new in zip(last[i:i+row], words[i:i+row]):
                so = "%08x" % old
                sn = s = "%08x" % new
                if old != new:
                    s = "\x1b[32m"
                    ld = False
                    for a,b in zip(so, sn):
                        d = a != b
                        if ld != d:
                            s += "\x1b[31;1;4m" if d else "\x1b[32m"
                            ld = d
                        s += b
                    s += "\x1b[m"
                out.append(s + " ")
            if ascii:
                out.append("| " + _ascii(cur[4*i:4*(i+row)]))
            out.append("\n")
    return "".join(out)
