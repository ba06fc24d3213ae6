import sys
from typing import List, Optional

from cmini_env import DEFAULT_MAX_DEPTH
from cmini_errors import CSyntaxError, EvalError
from cmini_eval import run_program
from cmini_parse import file_parse
from cmini_util import stringify_program

USAGE = "usage: cmini [--verbose] [--dump-ast] [--source] [--entry NAME] [--max-depth N] FILE"


def print_and_exit(msg: str, code: int) -> None:
    try:
        sys.stdout.flush()
        if msg:
            print(msg, file=sys.stderr if code else sys.stdout)
    except BrokenPipeError:
        pass
    raise SystemExit(code)


class CmdLineArgs:
    def __init__(
        self,
        filename: str,
        *,
        verbose: bool,
        dump_ast: bool,
        source: bool,
        entry: str,
        max_depth: int,
    ):
        self.filename = filename
        self.verbose = verbose
        self.dump_ast = dump_ast
        self.source = source
        self.entry = entry
        self.max_depth = max_depth


def parse_cmd_line_args(argv: List[str]) -> CmdLineArgs:
    verbose = False
    dump_ast = False
    source = False
    entry = "main"
    max_depth = DEFAULT_MAX_DEPTH
    positional: List[str] = []

    i = 0
    while i < len(argv):
        a = argv[i]
        if a in ("--verbose", "-v"):
            verbose = True
            i += 1
        elif a == "--dump-ast":
            dump_ast = True
            i += 1
        elif a == "--source":
            source = True
            i += 1
        elif a == "--entry":
            if i + 1 >= len(argv):
                print_and_exit("expected function name after --entry", 1)
            entry = argv[i + 1]
            i += 2
        elif a == "--max-depth":
            if i + 1 >= len(argv):
                print_and_exit("expected integer after --max-depth", 1)
            try:
                max_depth = int(argv[i + 1])
            except ValueError:
                print_and_exit("expected integer after --max-depth", 1)
            if max_depth < 1:
                print_and_exit("--max-depth must be positive", 1)
            i += 2
        elif a in ("--help", "-h"):
            print_and_exit(USAGE, 0)
        elif a.startswith("-") and a != "-":
            print_and_exit(f"unknown option {a}\n{USAGE}", 1)
        else:
            positional.append(a)
            i += 1

    if len(positional) != 1:
        print_and_exit(USAGE, 1)

    return CmdLineArgs(
        positional[0],
        verbose=verbose,
        dump_ast=dump_ast,
        source=source,
        entry=entry,
        max_depth=max_depth,
    )


def main(argv: Optional[List[str]] = None) -> None:
    cmd = parse_cmd_line_args(sys.argv[1:] if argv is None else argv)
    if cmd.source:
        src = cmd.filename
    elif cmd.filename == "-":
        src = sys.stdin.read()
    else:
        try:
            with open(cmd.filename, "r", encoding="utf-8") as f:
                src = f.read()
        except OSError as e:
            print_and_exit(f"error: cannot read {cmd.filename}: {e.strerror}", 1)

    try:
        prog = file_parse(src)
    except CSyntaxError as e:
        if cmd.verbose:
            print(e.caret(), file=sys.stderr)
        print_and_exit(f"error: {e}", 1)

    if cmd.dump_ast:
        print_and_exit(stringify_program(prog).rstrip("\n"), 0)

    try:
        status = run_program(prog, entry=cmd.entry, max_depth=cmd.max_depth, verbose=cmd.verbose)
    except EvalError as e:
        if cmd.verbose and e.call_stack:
            print("call stack (innermost last):", file=sys.stderr)
            for fr in e.call_stack:
                print(f"  {fr}", file=sys.stderr)
        print_and_exit(f"error: {e.kind}: {e}", 1)

    # The shell only sees the low 8 bits of the exit status
    print_and_exit("", status & 0xFF)


if __name__ == "__main__":
    main()
