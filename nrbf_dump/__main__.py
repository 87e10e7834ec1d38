#!/usr/bin/env python3
"""
NRBF Dump CLI

Decode .NET BinaryFormatter (MS-NRBF) files without the assemblies that
produced them.

Usage:
    python -m nrbf_dump decode <file>                 # Print the simplified tree
    python -m nrbf_dump decode <file> --ir-out ir.json --simple-out simple.json
    python -m nrbf_dump dump <file>                   # Offset-annotated record trace
    python -m nrbf_dump config                        # Show/edit config

Exit status is 0 on success and 1 on any decode failure; the failure
kind and byte offset are reported on stderr and no document is written.
"""

import argparse
import dataclasses
import json
import sys
from pathlib import Path
from typing import Any, List, Optional

from .config import CONFIG_FILE, DecoderConfig, load_config, save_config
from .decoder import decode
from .errors import NRBFError
from .projector import BACKREF_KEY, build_intermediate, project_result
from .trace import TraceObserver, hexdump


# ---------------------------------------------------------------------------
# Output formatting
# ---------------------------------------------------------------------------

class Output:
    """Handle output formatting."""

    def __init__(self, json_mode: bool = False, verbose: bool = False, quiet: bool = False):
        self.json_mode = json_mode
        self.verbose = verbose
        self.quiet = quiet

    def info(self, msg: str):
        if not self.quiet:
            print(msg, file=sys.stderr)

    def error(self, msg: str):
        print(f"ERROR: {msg}", file=sys.stderr)

    def decode_error(self, err: NRBFError, data: Optional[bytes] = None):
        """Report a decode failure as a structured diagnostic on stderr."""
        if self.json_mode:
            print(json.dumps(err.to_dict()), file=sys.stderr)
        else:
            where = f" at offset 0x{err.offset:x}" if err.offset is not None else ""
            self.error(f"{err.kind}{where}: {err.message}")

        if self.verbose and data is not None and err.offset is not None:
            start = max(0, err.offset - 16) & ~0xF
            print(f"\nBytes near 0x{err.offset:x}:", file=sys.stderr)
            print(hexdump(data, start, 64, mark=err.offset), file=sys.stderr)

    def tree(self, value: Any, indent: int = 2):
        if self.json_mode:
            print(json.dumps(value, indent=indent, default=str))
        else:
            print(format_tree(value))


def format_tree(value: Any, indent: int = 0) -> str:
    """Format a simplified value tree as a human-readable string."""
    prefix = "  " * indent
    lines: List[str] = []

    if isinstance(value, dict) and BACKREF_KEY in value and len(value) == 1:
        return f"{prefix}-> {value[BACKREF_KEY]} (cycle)"
    if isinstance(value, dict) and set(value) == {"name", "values"}:
        lines.append(f"{prefix}{value['name']} ({len(value['values'])} items):")
        for i, item in enumerate(value["values"]):
            lines.append(_format_entry(f"[{i}]", item, indent + 1))
        return "\n".join(lines)
    if isinstance(value, dict):
        for name, members in value.items():
            lines.append(f"{prefix}{name}:")
            if isinstance(members, dict):
                for member, item in members.items():
                    lines.append(_format_entry(member, item, indent + 1))
        return "\n".join(lines)
    if isinstance(value, list):
        lines.append(f"{prefix}({len(value)} items):")
        for i, item in enumerate(value):
            lines.append(_format_entry(f"[{i}]", item, indent + 1))
        return "\n".join(lines)
    return f"{prefix}{value!r}"


def _format_entry(label: str, item: Any, indent: int) -> str:
    prefix = "  " * indent
    if isinstance(item, (dict, list)):
        return f"{prefix}{label}:\n" + format_tree(item, indent + 1)
    return f"{prefix}{label} = {item!r}"


def _read_input(path: str, out: Output) -> bytes:
    data = Path(path).read_bytes()

    # Auto-detect if it's hex-encoded
    try:
        text = data.decode('ascii').strip()
        if text and all(c in '0123456789abcdefABCDEF \n\r\t' for c in text):
            data = bytes.fromhex(text.replace(' ', '').replace('\n', '').replace('\r', '').replace('\t', ''))
            out.info("Detected hex-encoded input, converted to binary")
    except (UnicodeDecodeError, ValueError):
        pass
    return data


# ---------------------------------------------------------------------------
# CLI commands
# ---------------------------------------------------------------------------

def cmd_decode(args, config: DecoderConfig, out: Output):
    """Decode a file and print (or write) the result documents."""
    data = _read_input(args.file, out)
    out.info(f"Decoding {len(data)} bytes of NRBF...")

    try:
        result = decode(data, config)
        simple = project_result(result, config)
        intermediate = build_intermediate(result) if (args.ir_out or args.output_dir) else None
    except NRBFError as e:
        out.decode_error(e, data)
        sys.exit(1)

    # Both documents exist in full before anything is written
    if args.ir_out:
        Path(args.ir_out).write_text(json.dumps(intermediate, indent=config.json_indent, default=str))
        out.info(f"Intermediate document written to {args.ir_out}")
    if args.simple_out:
        Path(args.simple_out).write_text(json.dumps(simple, indent=config.json_indent, default=str))
        out.info(f"Simplified document written to {args.simple_out}")
    if args.output_dir:
        target = Path(args.output_dir)
        target.mkdir(parents=True, exist_ok=True)
        (target / config.ir_filename).write_text(
            json.dumps(intermediate, indent=config.json_indent, default=str))
        (target / config.simple_filename).write_text(
            json.dumps(simple, indent=config.json_indent, default=str))
        out.info(f"Documents written to {target}")

    if not (args.ir_out or args.simple_out or args.output_dir) or out.verbose:
        out.tree(simple, indent=config.json_indent)

    out.info(f"{len(result.registry)} objects, root id {result.root_id}")


def cmd_dump(args, config: DecoderConfig, out: Output):
    """Trace every record and primitive read with its byte offset."""
    data = _read_input(args.file, out)
    print("Binary Serialization Format")
    print(f"File: {args.file}\nLength: {len(data)}\n")

    try:
        result = decode(data, config, observer=TraceObserver(sys.stdout))
    except NRBFError as e:
        out.decode_error(e, data)
        sys.exit(1)

    if args.hex:
        print(f"\nHex dump ({len(data)} bytes):")
        print(hexdump(data))
    out.info(f"\n{len(result.records)} records, {len(result.registry)} objects")


def cmd_config(args, config: DecoderConfig, out: Output):
    """Show or update configuration."""
    if args.set_max_depth is not None:
        config.max_depth = args.set_max_depth
    if args.set_max_bytes is not None:
        config.max_bytes = args.set_max_bytes if args.set_max_bytes > 0 else None
    if args.set_max_elements is not None:
        config.max_elements = args.set_max_elements
    if args.set_max_projection_depth is not None:
        config.max_projection_depth = args.set_max_projection_depth

    if args.save:
        save_config(config, args.config)
        out.info(f"Config saved to {args.config or CONFIG_FILE}")

    if out.json_mode:
        print(json.dumps(dataclasses.asdict(config), indent=2))
    else:
        for key, value in dataclasses.asdict(config).items():
            print(f"{key + ':':<24}{value}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nrbf_dump",
        description="Decode .NET BinaryFormatter (MS-NRBF) streams",
    )

    # Global options
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    parser.add_argument("-q", "--quiet", action="store_true", help="Suppress info messages")
    parser.add_argument("-j", "--json", action="store_true", help="JSON output")
    parser.add_argument("--config", help=f"Config file (default: {CONFIG_FILE})")
    parser.add_argument("--max-depth", type=int, help="Maximum record nesting depth")
    parser.add_argument("--max-bytes", type=int, help="Maximum bytes consumed per decode")
    parser.add_argument("--max-elements", type=int, help="Maximum members/elements per record")
    parser.add_argument("--max-projection-depth", type=int,
                        help="Maximum class/array levels in the simplified tree")

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    # decode
    p_decode = subparsers.add_parser("decode", help="Decode a file into a simplified value tree")
    p_decode.add_argument("file", help="NRBF file to decode (or hex-encoded)")
    p_decode.add_argument("--ir-out", help="Write the intermediate document (JSON) here")
    p_decode.add_argument("--simple-out", help="Write the simplified document (JSON) here")
    p_decode.add_argument("-o", "--output-dir", help="Write both documents into this directory")

    # dump
    p_dump = subparsers.add_parser("dump", help="Print an offset-annotated trace of every read")
    p_dump.add_argument("file", help="NRBF file to trace (or hex-encoded)")
    p_dump.add_argument("--hex", action="store_true", help="Append a hex dump of the input")

    # config
    p_config = subparsers.add_parser("config", help="Show/edit configuration")
    p_config.add_argument("--set-max-depth", type=int)
    p_config.add_argument("--set-max-bytes", type=int, help="0 removes the limit")
    p_config.add_argument("--set-max-elements", type=int)
    p_config.add_argument("--set-max-projection-depth", type=int)
    p_config.add_argument("--save", action="store_true", help="Persist to disk")

    return parser


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def main(argv: Optional[List[str]] = None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    # Output handler
    out = Output(json_mode=args.json, verbose=args.verbose, quiet=args.quiet)

    # Load/build config, then apply CLI overrides
    try:
        config = load_config(args.config)
        if args.max_depth is not None:
            config.max_depth = args.max_depth
        if args.max_bytes is not None:
            config.max_bytes = args.max_bytes
        if args.max_elements is not None:
            config.max_elements = args.max_elements
        if args.max_projection_depth is not None:
            config.max_projection_depth = args.max_projection_depth
        config.__post_init__()
    except ValueError as e:
        out.error(str(e))
        sys.exit(2)

    # Dispatch
    commands = {
        "decode": cmd_decode,
        "dump": cmd_dump,
        "config": cmd_config,
    }

    handler = commands.get(args.command)
    if handler:
        try:
            handler(args, config, out)
        except FileNotFoundError as e:
            out.error(str(e))
            sys.exit(1)
        except KeyboardInterrupt:
            out.info("\nInterrupted")
            sys.exit(130)
        except Exception as e:
            out.error(f"Unexpected error: {e}")
            if args.verbose:
                import traceback
                traceback.print_exc()
            sys.exit(1)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
