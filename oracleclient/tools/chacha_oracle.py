#!/usr/bin/env python3
# SPDX-License-Identifier: MIT
import sys, pathlib
sys.path.append(str(pathlib.Path(__file__).resolve().parents[1]))

import argparse

from chachaoracle.harness import *
from chachaoracle.session import run_host, run_loopback, run_target
from chachaoracle.state import KEY_SIZE, NONCE_SIZE, WORD_FORMATS
from chachaoracle.utils import chexdump, unhex

def hexbytes(size):
    def parse(s):
        try:
            data = unhex(s)
        except ValueError:
            raise argparse.ArgumentTypeError(f"not a hex string: {s!r}")
        if size is not None and len(data) != size:
            raise argparse.ArgumentTypeError(f"expected {size} bytes, got {len(data)}")
        return data
    return parse

def main(argv=None):
    parser = argparse.ArgumentParser(description='ChaCha20 keystream oracle')
    parser.add_argument('-k', '--key', type=hexbytes(KEY_SIZE), default=RFC8439_KEY)
    parser.add_argument('-N', '--nonce', type=hexbytes(NONCE_SIZE), default=RFC8439_NONCE)
    parser.add_argument('-n', '--iterations', type=int, default=1)
    parser.add_argument('-c', '--counter', type=lambda s: int(s, 0), default=None,
                        help='initial block counter (program end only, default 1)')
    parser.add_argument('-b', '--byteorder', choices=sorted(WORD_FORMATS), default=None,
                        help='output word order (program end only, default little)')
    parser.add_argument('-e', '--expect', type=hexbytes(64), default=None,
                        help='expected final block (defaults to the RFC 8439 block '
                             'when run with the RFC key, nonce and one iteration)')
    parser.add_argument('--device', default=None,
                        help='act as the host over a serial link (path[:baud])')
    parser.add_argument('--serve', default=None, metavar='DEVICE',
                        help='act as the program over a serial link (path[:baud])')
    parser.add_argument('-d', '--debug', action="store_true")
    args = parser.parse_args(argv)

    if args.iterations < 0:
        parser.error("iteration count must not be negative")
    if args.device and (args.counter is not None or args.byteorder is not None):
        parser.error("--counter and --byteorder belong to the program end, not --device")
    if args.counter is None:
        args.counter = 1
    if args.byteorder is None:
        args.byteorder = "little"

    if args.serve:
        block = run_target(args.serve, counter=args.counter, byteorder=args.byteorder,
                           debug=args.debug)
        chexdump(block)
        return 0

    if args.device:
        harness = run_host(args.device, args.key, args.nonce, args.iterations,
                           debug=args.debug)
    else:
        harness = run_loopback(args.key, args.nonce, args.iterations, args.counter,
                               args.byteorder, debug=args.debug)

    print(f"Output after {args.iterations} iteration(s):")
    chexdump(harness.output)

    expected = args.expect
    if (expected is None and args.key == RFC8439_KEY and args.nonce == RFC8439_NONCE
            and args.iterations == 1 and args.counter == 1 and args.byteorder == "little"):
        expected = RFC8439_BLOCK

    if expected is not None:
        try:
            harness.verify(expected)
        except VerificationError as e:
            print(f"FAIL: {e}")
            return 1
        print("PASS")
    return 0

if __name__ == "__main__":
    sys.exit(main())
