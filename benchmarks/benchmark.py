#!/usr/bin/env python3
"""ReplaceKit Benchmark Suite — Measuring replacement recovery rates.

Simulates realistic LLM edit requests whose old content does not exactly
match the file, and compares exact matching (baseline) against ReplaceKit's
strategy cascade. A case counts as recovered when the cascade finds exactly
one span.

Usage:
    python3 benchmarks/benchmark.py
"""

import os
import sys

# Add parent dir so we can import rk
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from rk import find_exact_matches, find_matches


# ---------------------------------------------------------------------------
# Benchmark cases: (name, category, file_content, llm_old_content)
# ---------------------------------------------------------------------------

BENCHMARKS = []


def bench(name, category, content, old_content):
    """Register a benchmark case."""
    BENCHMARKS.append((name, category, content, old_content))


# ===================== LINE ENDINGS =====================

bench(
    "LF fragment against CRLF file",
    "line_endings",
    "def process(data):\r\n    result = transform(data)\r\n    return result\r\n",
    "def process(data):\n    result = transform(data)\n",
)

bench(
    "CRLF fragment against LF file",
    "line_endings",
    "class Config:\n    debug = False\n    verbose = True\n",
    "class Config:\r\n    debug = False\r\n",
)

bench(
    "Old Mac CR file",
    "line_endings",
    "first\rsecond\rthird\r",
    "second\nthird",
)

bench(
    "Mixed endings in one file",
    "line_endings",
    "a = 1\nb = 2\r\nc = 3\rd = 4\n",
    "b = 2\nc = 3",
)

# ===================== INDENTATION =====================

bench(
    "Method quoted without class indent",
    "indentation",
    "class Store:\n    def get(self, key):\n        return self.data[key]\n",
    "def get(self, key):\n    return self.data[key]\n",
)

bench(
    "Tabs in file, spaces in fragment",
    "indentation",
    "func main() {\n\tif ok {\n\t\trun()\n\t}\n}\n",
    "if ok {\n    run()\n}",
)

bench(
    "Flattened fragment",
    "indentation",
    "    if (a) {\n        b();\n        c();\n    }\n",
    "if (a) {\nb();\nc();\n}",
)

bench(
    "Single line with padding",
    "indentation",
    "items:\n   - name: web   \n   - name: db\n",
    "- name: web\t",
)

# ===================== BLANK LINES =====================

bench(
    "Blank line dropped by model",
    "blank_lines",
    "def run():\n    setup()\n\n    execute()\n",
    "def run():\n    setup()\n    execute()\n",
)

bench(
    "Whitespace-only lines in file",
    "blank_lines",
    "function test() {\n    \n    console.log('hello');\n    \n}",
    "function test() {\nconsole.log('hello');\n}",
)

bench(
    "Extra blank lines in fragment",
    "blank_lines",
    "x = 1\ny = 2\nz = 3\n",
    "x = 1\n\n\ny = 2\n",
)

# ===================== TRAILING WHITESPACE =====================

bench(
    "Trailing whitespace in file",
    "trailing_whitespace",
    "const x = 1;   \nconst y = 2;  \n",
    "const x = 1;\nconst y = 2;",
)

bench(
    "Trailing whitespace in fragment",
    "trailing_whitespace",
    "SELECT id\nFROM users\nWHERE active = 1\n",
    "SELECT id   \nFROM users  \n",
)

# ===================== OUT OF SCOPE =====================
# The cascade never guesses at changed content; these should stay unmatched.

bench(
    "Renamed identifier",
    "out_of_scope",
    "for i, v in enumerate(vals):\n    res[i] = fn(v)\n",
    "for index, value in enumerate(vals):\n    res[index] = fn(value)\n",
)

bench(
    "Multiline compressed to one line",
    "out_of_scope",
    "results = [\n    process(x)\n    for x in data\n]\n",
    "results = [process(x) for x in data]\n",
)


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------

def run_benchmarks():
    exact_pass = 0
    rk_pass = 0
    total = len(BENCHMARKS)

    results_by_category = {}

    print("=" * 78)
    print("  ReplaceKit Benchmark Suite — Replacement Recovery")
    print("=" * 78)
    print()

    for name, category, content, old_content in BENCHMARKS:
        exact_ok = len(find_exact_matches(content, old_content)) == 1

        match_set = find_matches(content, old_content)
        rk_ok = len(match_set.spans) == 1
        if len(match_set.spans) > 1:
            strategy = "ambiguous"
        else:
            strategy = match_set.strategy

        if exact_ok:
            exact_pass += 1
        if rk_ok:
            rk_pass += 1

        stats = results_by_category.setdefault(category, {"exact": 0, "rk": 0, "total": 0})
        stats["total"] += 1
        if exact_ok:
            stats["exact"] += 1
        if rk_ok:
            stats["rk"] += 1

        exact_sym = "✅" if exact_ok else "❌"
        rk_sym = "✅" if rk_ok else "❌"

        print(f"  {exact_sym} → {rk_sym}  [{strategy:>23s}]  {name}")

    print()
    print("=" * 78)
    print("  Results by Category")
    print("=" * 78)
    print()
    print(f"  {'Category':<25s} {'Exact Match':>12s} {'ReplaceKit':>12s} {'Recovery':>10s}")
    print(f"  {'─' * 25} {'─' * 12} {'─' * 12} {'─' * 10}")

    for cat, data in results_by_category.items():
        cat_label = cat.replace("_", " ").title()
        exact_rate = f"{data['exact']}/{data['total']}"
        rk_rate = f"{data['rk']}/{data['total']}"
        if data['total'] - data['exact'] > 0:
            recovery = f"{(data['rk'] - data['exact']) / (data['total'] - data['exact']):.0%}"
        else:
            recovery = "—"
        print(f"  {cat_label:<25s} {exact_rate:>12s} {rk_rate:>12s} {recovery:>10s}")

    print(f"  {'─' * 25} {'─' * 12} {'─' * 12} {'─' * 10}")
    if total - exact_pass > 0:
        recovery_total = f"{(rk_pass - exact_pass) / (total - exact_pass):.0%}"
    else:
        recovery_total = "—"
    print(f"  {'TOTAL':<25s} {f'{exact_pass}/{total}':>12s} {f'{rk_pass}/{total}':>12s} {recovery_total:>10s}")

    print()
    print(f"  Exact match baseline:  {exact_pass}/{total} ({exact_pass/total:.0%})")
    print(f"  ReplaceKit cascade:    {rk_pass}/{total} ({rk_pass/total:.0%})")
    print()

    return exact_pass, rk_pass, total


if __name__ == "__main__":
    exact, rk, total = run_benchmarks()
    sys.exit(0 if rk >= exact else 1)
