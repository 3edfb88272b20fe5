import asyncio
import logging
import sys
from pathlib import Path

from mocktave.mocktave_config import load_config
from mocktave.mocktave_printer import Printer
from mocktave.mocktave_runtime import Interpreter
from mocktave.mocktave_serialize import serialize

# A basic awaitable input prompt.
async def ainput(prompt: str) -> str:
    loop = asyncio.get_running_loop()
    sys.stdout.write(prompt)
    sys.stdout.flush()
    return await loop.run_in_executor(None, sys.stdin.readline)

def make_interpreter(config_path=None) -> Interpreter:
    return Interpreter(config=load_config(config_path))

async def run_script_file(file_path: str, fmt: str = "display", config_path=None):
    """Run a script file non-interactively and exit with appropriate status."""
    p = Path(file_path)
    try:
        source = p.read_text(encoding="utf-8")
    except FileNotFoundError:
        print(f"Error: file not found: {file_path}", file=sys.stderr)
        raise SystemExit(1)
    async with make_interpreter(config_path) as interp:
        result = await interp.handle_script(source)
    if result.status == 'error':
        print(result.format_error(), file=sys.stderr)
        raise SystemExit(1)
    if fmt == "display":
        print(Printer().pformat_workspace(result.value), end="")
    else:
        print(serialize(result.value, fmt=fmt))

def parse_args(argv):
    """Returns (script path or None, output format, config path, verbose)."""
    path, fmt, config_path, verbose = None, "display", None, False
    args = iter(argv)
    for arg in args:
        if arg in ("--json", "--yaml"):
            fmt = arg[2:]
        elif arg == "--config":
            config_path = next(args, None)
        elif arg in ("-v", "--verbose"):
            verbose = True
        elif not arg.startswith("-") and path is None:
            path = arg
    return path, fmt, config_path, verbose

async def main():
    """Run a script file when provided, otherwise start the interactive REPL."""
    path, fmt, config_path, verbose = parse_args(sys.argv[1:])
    if verbose:
        logging.basicConfig(level=logging.DEBUG)
    if path is not None:
        await run_script_file(path, fmt, config_path)
        return

    print("mocktave REPL v0.1")
    print("Type 'exit' or press Ctrl+D to quit.")

    # Each line runs in a fresh interpreter, so replay the accepted history.
    history = []
    previous = {}
    printer = Printer()

    async with make_interpreter(config_path) as interp:
        while True:
            try:
                raw = await ainput(">> ")
                if raw == "":
                    raise EOFError
                line = raw.strip()

                if not line:
                    continue
                if line == "exit":
                    break

                result = await interp.handle_script("\n".join(history + [line]))

                if result.status == 'error':
                    print(result.format_error(), file=sys.stderr)
                    continue
                history.append(line)

                # Print only what this line bound or changed
                for name, value in result.value.items():
                    if previous.get(name) != value:
                        print(printer.pformat_display(name, value), end="")
                previous = dict(result.value)

            except EOFError:
                print("\nExiting.")
                break

if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nExiting.")
