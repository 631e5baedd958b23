#!/usr/bin/env python3
"""
ReplaceKit Batch Editor — Apply multiple file edits from JSON or XML.

Reads a list of edits from stdin or file and applies them sequentially
using ReplaceKit's replacement cascade. Each edit names one file and the
replacements to make in it; an edit either applies in full or leaves its
file untouched.

Usage (JSON):
    cat edits.json | python batch_edit.py
    python batch_edit.py -i edits.json

Usage (XML — natural for LLM output):
    cat edits.xml | python batch_edit.py
    python batch_edit.py -i edits.xml

JSON format:
    [
      {"file": "app.py", "replacements": [
        {"oldContent": "def foo():", "newContent": "def foo() -> None:"},
        {"oldContent": "return x", "newContent": "return int(x)"}
      ]}
    ]

XML format (auto-detected; <edit> elements for the same file are grouped):
    <edits>
      <edit file="app.py">
        <old>def foo():</old>
        <new>def foo() -> None:</new>
      </edit>
      <edit file="app.py" multiple="true">
        <old>print(</old>
        <new>log(</new>
      </edit>
    </edits>
"""

from __future__ import annotations

import argparse
import json
import sys
import os
import xml.etree.ElementTree as ET

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from rk_wrapper import ReplaceKit


class C:
    BOLD = "\033[1m"
    DIM = "\033[2m"
    GREEN = "\033[32m"
    RED = "\033[31m"
    YELLOW = "\033[33m"
    RESET = "\033[0m"


def parse_json_edits(text: str) -> list[dict]:
    data = json.loads(text)
    if isinstance(data, dict):
        data = data.get("edits", [data])
    return data


def parse_xml_edits(text: str) -> list[dict]:
    root = ET.fromstring(text)
    edits = []
    by_file = {}
    for el in root.iter("edit"):
        file = el.get("file") or el.get("path") or ""
        old = el.findtext("old") or el.findtext("old_content") or ""
        new = el.findtext("new") or el.findtext("new_content") or ""
        if not (file and old):
            continue
        if file not in by_file:
            by_file[file] = {"file": file, "replacements": []}
            edits.append(by_file[file])
        by_file[file]["replacements"].append({
            "oldContent": old,
            "newContent": new,
            "multiple": el.get("multiple", "").lower() == "true",
        })
    return edits


def parse_edits(text: str) -> list[dict]:
    text = text.strip()
    if text.startswith("<"):
        return parse_xml_edits(text)
    return parse_json_edits(text)


def main() -> None:
    parser = argparse.ArgumentParser(description="Apply batch edits with ReplaceKit")
    parser.add_argument("-i", "--input", help="Input file (JSON or XML). Default: stdin")
    parser.add_argument("--dry-run", action="store_true", help="Show diffs without applying")
    parser.add_argument("--json", action="store_true", dest="json_output", help="JSON output")
    args = parser.parse_args()

    if args.input:
        with open(args.input) as fh:
            text = fh.read()
    else:
        if sys.stdin.isatty():
            parser.error("Provide -i file or pipe edits via stdin")
        text = sys.stdin.read()

    edits = parse_edits(text)
    rk = ReplaceKit()

    if not args.json_output:
        print(f"{C.BOLD}Applying {len(edits)} edit(s)...{C.RESET}\n")

    results = []
    ok = fail = 0

    for i, edit in enumerate(edits, 1):
        f = edit["file"]
        replacements = edit["replacements"]

        if args.dry_run:
            diff = rk.diff(f, replacements)
            if diff is not None:
                if not args.json_output:
                    print(f"{C.GREEN}[{i}] Would edit {f}{C.RESET}")
                    print(diff or f"{C.DIM}(no changes){C.RESET}")
                results.append({"file": f, "success": True, "diff": diff})
                ok += 1
            else:
                if not args.json_output:
                    print(f"{C.RED}[{i}] Cannot apply to {f}{C.RESET}")
                results.append({"file": f, "success": False, "error": "no match"})
                fail += 1
            continue

        result = rk.edit(file=f, replacements=replacements)
        results.append(result.to_dict())

        if result.success:
            ok += 1
            if not args.json_output:
                note = "" if result.changed else f" {C.DIM}(unchanged){C.RESET}"
                print(
                    f"  {C.GREEN}✓{C.RESET} [{i}] {C.BOLD}{f}{C.RESET} — "
                    f"{', '.join(result.strategies)}{note}"
                )
        else:
            fail += 1
            if not args.json_output:
                print(f"  {C.RED}✗{C.RESET} [{i}] {C.BOLD}{f}{C.RESET}")
                for err in result.errors:
                    print(f"      {C.YELLOW}{err}{C.RESET}")

    if args.json_output:
        print(json.dumps({"total": len(edits), "ok": ok, "failed": fail, "results": results}, indent=2))
    else:
        print(f"\n{C.BOLD}Results:{C.RESET} {C.GREEN}{ok} ok{C.RESET}, {C.RED}{fail} failed{C.RESET}")


if __name__ == "__main__":
    main()
