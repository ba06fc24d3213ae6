#!/usr/bin/env python3
import argparse
import glob
import subprocess
import sys
from pathlib import Path

def run_one(script: Path, testfile: str) -> int:
    tf = Path(testfile).resolve()
    print(f"==> {testfile}")
    p = subprocess.run([sys.executable, str(script), str(tf)], capture_output=True, text=True)
    if p.stderr:
        sys.stderr.write(p.stderr)

    expected = tf.with_suffix(".expected")
    if not expected.exists():
        sys.stdout.write(p.stdout)
        return p.returncode

    want = expected.read_text(encoding="utf-8")
    if p.stdout != want:
        print(f"FAIL: output differs from {expected.name}")
        print("--- expected")
        sys.stdout.write(want)
        print("--- got")
        sys.stdout.write(p.stdout)
        return 1
    if p.returncode != 0:
        print(f"FAIL: exit status {p.returncode}")
        return p.returncode
    print("ok")
    return 0

def main() -> int:
    ap = argparse.ArgumentParser(
        description="Run the cmini interpreter over multiple .c test files and check their output."
    )
    ap.add_argument(
        "paths",
        nargs="+",
        help="Files/dirs/globs of .c tests (e.g., tests/fixtures/*.c mytests/ foo.c).",
    )
    ap.add_argument(
        "--script",
        default=str(Path(__file__).parent / "src" / "cmini_main.py"),
        help="Path to the interpreter entry script (default: src/cmini_main.py).",
    )
    ap.add_argument(
        "--fail-fast",
        action="store_true",
        help="Stop at the first failing test (nonzero exit).",
    )
    args = ap.parse_args()

    script = Path(args.script).resolve()
    if not script.exists():
        print(f"error: script not found: {script}", file=sys.stderr)
        return 2

    files: list[str] = []
    for p in args.paths:
        expanded = glob.glob(p)
        if expanded:
            for e in expanded:
                pe = Path(e)
                if pe.is_dir():
                    files.extend(sorted(str(x) for x in pe.rglob("*.c")))
                else:
                    files.append(str(pe))
            continue

        pp = Path(p)
        if pp.is_dir():
            files.extend(sorted(str(x) for x in pp.rglob("*.c")))
        elif pp.exists():
            files.append(str(pp))

    seen = set()
    files = [f for f in files if not (f in seen or seen.add(f))]

    if not files:
        print("error: no .c files found", file=sys.stderr)
        return 2

    worst_rc = 0
    for f in files:
        rc = run_one(script, f)
        if rc != 0:
            worst_rc = rc
            if args.fail_fast:
                return rc

    return worst_rc

if __name__ == "__main__":
    raise SystemExit(main())
