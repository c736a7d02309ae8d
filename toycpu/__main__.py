"""Demo runner: assemble and run the built-in example programs."""

import argparse
import logging
import sys

from .assembler import Assembler, to_listing
from .cpu import CPU, RunState
from .disassembler import to_source
from .errors import AssemblyFailed
from .programs import PROGRAMS

DEFAULT_MAX_STEPS = 100000


def run_program(name: str, source: str, args: argparse.Namespace) -> bool:
    print("\n" + "=" * 70)
    print(f"Running: {name}")
    print("=" * 70)

    print("\nSource Code:")
    print("-" * 70)
    print(source.strip('\n'))
    print("-" * 70)

    try:
        image = Assembler().assemble(source)
    except AssemblyFailed as e:
        print(f"\nAssembly failed with {len(e.errors)} error(s):")
        for error in e.errors:
            print(f"  {error}")
        return False

    print(f"\nAssembled: {len(image)} bytes")
    print("\nMachine Code (hex):")
    for i in range(0, len(image), 16):
        hex_line = ' '.join(f"{b:02X}" for b in image[i:i + 16])
        print(f"  0x{i:02X}: {hex_line}")

    if args.listing:
        print("\nBinary Listing:")
        print(to_listing(image))

    if args.disassemble:
        print("\nDisassembly:")
        print(to_source(image), end='')

    cpu = CPU(image, trace=args.trace)
    state = cpu.run(max_steps=args.max_steps)

    print("\n" + "-" * 70)
    print("Final CPU State:")
    print("-" * 70)
    print(cpu.format_state())
    if state is RunState.FAULTED:
        print(f"Fault: {cpu.fault}")
    print("\nMemory:")
    print(cpu.dump_memory())
    return state is RunState.HALTED


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        prog='toycpu', description='Assemble and run the toy CPU example programs.')
    parser.add_argument('programs', nargs='*', metavar='PROGRAM',
                        help=f"programs to run: {', '.join(PROGRAMS)} (default: all)")
    parser.add_argument('--trace', action='store_true', help='log CPU state before every step')
    parser.add_argument('--max-steps', type=int, default=DEFAULT_MAX_STEPS,
                        help=f'step limit per program (default: {DEFAULT_MAX_STEPS})')
    parser.add_argument('--listing', action='store_true', help='print the binary listing')
    parser.add_argument('--disassemble', action='store_true', help='print the disassembly')
    parser.add_argument('-v', '--verbose', action='store_true', help='enable info logging')
    args = parser.parse_args(argv)
    unknown = [name for name in args.programs if name not in PROGRAMS]
    if unknown:
        parser.error(f"unknown program(s): {', '.join(unknown)}")

    level = logging.DEBUG if args.trace else logging.INFO if args.verbose else logging.WARNING
    logging.basicConfig(level=level, format='[%(levelname)s] %(message)s')

    print("=" * 70)
    print("Toy CPU - 4-register 8-bit assembler and emulator")
    print("=" * 70)

    ok = True
    for key in args.programs or list(PROGRAMS):
        name, source = PROGRAMS[key]
        ok = run_program(name, source, args) and ok
    return 0 if ok else 1


if __name__ == '__main__':
    sys.exit(main())
