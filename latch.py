import asyncio
import logging
import os
import sys
from pathlib import Path

from latch.latch_registry import Registry
from latch.latch_runtime import TaskManager
from latch.latch_serialize import load_nodes, to_json
from latch.latch_types import generate_types

USAGE = """usage:
  latch.py types <nodes.json|yaml>
  latch.py run <script> [--nodes FILE --endpoint URL] [--id ID]"""


def _option(args: list, name: str):
    if name in args:
        i = args.index(name)
        if i + 1 < len(args):
            return args[i + 1]
        print(f"Error: {name} needs a value", file=sys.stderr)
        raise SystemExit(2)
    return None


def print_types(nodes_path: str):
    """Print the SDK declarations for a node registry file."""
    try:
        nodes = load_nodes(nodes_path)
    except FileNotFoundError:
        print(f"Error: file not found: {nodes_path}", file=sys.stderr)
        raise SystemExit(1)
    print(generate_types(nodes))


async def run_script_file(file_path: str, args: list):
    """Drive a script to completion, fulfilling its requests over HTTP."""
    registry = Registry()
    nodes_path = _option(args, "--nodes")
    if nodes_path:
        endpoint = _option(args, "--endpoint")
        if not endpoint:
            print("Error: --nodes requires --endpoint", file=sys.stderr)
            raise SystemExit(2)
        try:
            nodes = load_nodes(nodes_path)
        except FileNotFoundError:
            print(f"Error: file not found: {nodes_path}", file=sys.stderr)
            raise SystemExit(1)
        registry.use_nodes(nodes, endpoint)

    try:
        source = Path(file_path).read_text(encoding="utf-8")
    except FileNotFoundError:
        print(f"Error: file not found: {file_path}", file=sys.stderr)
        raise SystemExit(1)

    manager = TaskManager(registry=registry)
    task = await manager.drive(source, _option(args, "--id"))
    print(to_json(task.as_dict()))
    if task.status == "error":
        raise SystemExit(1)


async def main():
    if os.environ.get("LATCH_DEBUG"):
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    args = sys.argv[1:]
    if len(args) < 2:
        print(USAGE, file=sys.stderr)
        raise SystemExit(2)

    command, target = args[0], args[1]
    if command == "types":
        print_types(target)
    elif command == "run":
        await run_script_file(target, args[2:])
    else:
        print(USAGE, file=sys.stderr)
        raise SystemExit(2)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nExiting.")
