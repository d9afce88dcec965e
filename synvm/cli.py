#!/usr/bin/env python3
"""
synvm — command line runner

Usage:
    synvm IMAGE [options]
    python -m synvm IMAGE [options]

Examples:
    synvm challenge.bin
    synvm challenge.bin --trace -vv --log-file trace.log
    synvm challenge.bin --serial /dev/ttyUSB0 --baud 115200
    synvm challenge.bin --serial socket://localhost:7777
    synvm --config run.json --max-steps 1000000

While the machine is waiting for input, typing a line that starts with
"save" stores a snapshot and "load" returns to it.

Exit status:
    0    halted, or input closed
    1    machine error, bad image or bad config
    2    --max-steps exhausted
    130  interrupted
"""

import argparse
import logging
import sys
from pathlib import Path

import serial

from . import __version__
from .config import RunConfig
from .emu import VirtualMachine, StopReason
from .errors import VMError
from .loader import load_image
from .periph.terminal import StreamTerminal, SerialTerminal

log = logging.getLogger('synvm')

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_TIMEOUT = 2
EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="synvm",
        description="Run a 16-bit word VM program image",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("image", nargs="?", help="Program image (.bin, little-endian words)")
    parser.add_argument("--config", help="JSON run configuration file")
    parser.add_argument("--max-steps", type=int, default=None,
                        help="Stop after N instructions (exit status 2)")
    parser.add_argument("--trace", action="store_true", default=None,
                        help="Log every instruction at DEBUG (use with -v)")
    parser.add_argument("--encoding", default=None,
                        help="Text encoding for console input (default: latin-1)")
    parser.add_argument("--serial", dest="serial_port", default=None,
                        help="Serial device or pyserial URL to use as the console")
    parser.add_argument("--baud", dest="baudrate", type=int, default=None,
                        help="Serial baud rate (default: 9600)")

    # Logging
    parser.add_argument("--verbose", "-v", action="count", default=0,
                        help="Increase verbosity (-v, -vv)")
    parser.add_argument("--quiet", "-q", action="store_true",
                        help="Only log errors")
    parser.add_argument("--log-file", help="Also write the log to this file")
    parser.add_argument("--version", action="version", version=f"synvm {__version__}")
    return parser


def setup_logging(args):
    """Configure logging. Log goes to stderr; stdout belongs to the machine."""
    if args.quiet:
        level = logging.ERROR
    elif args.verbose == 0:
        level = logging.WARNING
    elif args.verbose == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG

    handlers = []
    console = logging.StreamHandler(sys.stderr)
    console.setLevel(level)
    console.setFormatter(logging.Formatter('%(levelname)s: %(message)s'))
    handlers.append(console)

    if args.log_file:
        log_path = Path(args.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        ))
        handlers.append(file_handler)

    logging.basicConfig(
        level=logging.DEBUG if args.log_file else level,
        handlers=handlers,
        force=True,
    )


def resolve_config(args) -> RunConfig:
    config = RunConfig.from_file(args.config) if args.config else RunConfig()
    return config.merged(
        image=args.image,
        max_steps=args.max_steps,
        trace=args.trace,
        encoding=args.encoding,
        serial_port=args.serial_port,
        baudrate=args.baudrate,
    )


def open_terminal(config: RunConfig):
    if config.serial_port:
        return SerialTerminal(config.serial_port, baudrate=config.baudrate,
                              encoding=config.encoding)
    return StreamTerminal()


def main(argv=None, terminal=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args)

    try:
        config = resolve_config(args)
        if not config.image:
            parser.error("no program image given (positional IMAGE or \"image\" in --config)")
        program = load_image(config.image)
    except VMError as e:
        log.error(f"{e}")
        return EXIT_ERROR

    if terminal is None:
        try:
            terminal = open_terminal(config)
        except serial.SerialException as e:
            log.error(f"Cannot open console {config.serial_port}: {e}")
            return EXIT_ERROR

    vm = VirtualMachine(program, terminal, encoding=config.encoding, trace=config.trace)
    log.info(f"Running {config.image} ({vm.program_size} words)")

    try:
        reason = vm.run(max_steps=config.max_steps)
    except VMError as e:
        log.error(f"Machine error: {e}")
        log.debug(f"State: {vm.state()}")
        log.debug("Memory near ip:\n%s", vm.memory.dump(e.address or 0))
        return EXIT_ERROR
    except KeyboardInterrupt:
        log.warning(f"Interrupted at ip={vm.ip:05d}")
        return EXIT_INTERRUPTED
    finally:
        terminal.flush()
        terminal.close()

    log.info(f"Stopped: {reason.value} after {vm.steps} steps")
    if reason is StopReason.TIMEOUT:
        return EXIT_TIMEOUT
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
