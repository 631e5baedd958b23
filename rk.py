#!/usr/bin/env python3
"""ReplaceKit — Fuzzy content replacement for LLM editing tools.

Applies a list of (old content, new content) replacements to a block of
text. Each old fragment is located with an escalating cascade of matching
strategies, replaced while keeping the surrounding indentation and line
ending style, and every failure is reported as a readable error string
instead of an exception.

Algorithm:
  1. Try exact match
  2. Fall back to line-ending-normalized match (CRLF/CR -> LF)
  3. Fall back to single-line trimmed match (first hit only)
  4. Fall back to multi-line fuzzy match (trimmed lines, blank lines skipped)

The first strategy that finds anything wins; later ones are never tried.

Exit codes: 0=applied, 1=not found/conflict/error, 2=multiple occurrences
"""

import argparse
import difflib
import json
import logging
import os
import re
import sys
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple, Union

logger = logging.getLogger("replacekit")

ERROR_SNIPPET_LIMIT = 100

STRATEGY_EXACT = "exact"
STRATEGY_NORMALIZED = "normalized_line_endings"
STRATEGY_LINE_TRIMMED = "line_trimmed"
STRATEGY_FUZZY = "fuzzy_multiline"
STRATEGY_NONE = "none"

_LINE_BREAK = re.compile(r'\r?\n')
_LEADING_WS = re.compile(r'\s*')


@dataclass(frozen=True)
class Replacement:
    old_content: str
    new_content: str
    multiple: bool = False


@dataclass
class MatchSpan:
    start: int
    end: int
    matched_text: str


@dataclass
class MatchSet:
    spans: List[MatchSpan]
    strategy: str  # "exact", "normalized_line_endings", "line_trimmed", "fuzzy_multiline", "none"


@dataclass
class ReplacementOutcome:
    status: str  # "replaced", "prepended", "not_found", "ambiguous"
    strategy: str = STRATEGY_NONE
    count: int = 0


@dataclass
class ReplaceResult:
    updated_content: str
    errors: List[str] = field(default_factory=list)
    outcomes: List[ReplacementOutcome] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict:
        return {
            "updatedContent": self.updated_content,
            "errors": list(self.errors),
            "strategies": [o.strategy for o in self.outcomes],
        }


@dataclass
class FileResult:
    status: str  # "applied", "unchanged", "failed", "error"
    file: str
    errors: List[str] = field(default_factory=list)
    strategies: List[str] = field(default_factory=list)
    diff: Optional[str] = None
    ambiguous: bool = False


class ConflictingReplacementError(Exception):
    """Raised when one old fragment is mapped to two different new fragments."""

    def __init__(self, fragment: str):
        self.fragment = fragment
        super().__init__(f'Conflicting replacement values for: "{fragment}"')


ReplacementLike = Union[Replacement, Dict[str, object]]


def replacement_from_dict(data: Dict[str, object]) -> Replacement:
    """Build a Replacement from the wire shape or the snake-case shape."""
    if not isinstance(data, dict):
        raise ValueError("Each replacement must be a JSON object")
    if "oldContent" in data:
        old = data["oldContent"]
    elif "old_content" in data:
        old = data["old_content"]
    else:
        raise ValueError("Replacement is missing 'oldContent'")
    new = data.get("newContent", data.get("new_content", ""))
    if not isinstance(old, str) or not isinstance(new, str):
        raise ValueError("Replacement 'oldContent' and 'newContent' must be strings")
    return Replacement(
        old_content=old,
        new_content=new,
        multiple=bool(data.get("multiple", False)),
    )


def _coerce(replacements: List[ReplacementLike]) -> List[Replacement]:
    return [
        r if isinstance(r, Replacement) else replacement_from_dict(r)
        for r in replacements
    ]


# ---------------------------------------------------------------------------
# Planning
# ---------------------------------------------------------------------------

def plan_replacements(replacements: List[Replacement]) -> None:
    """Reject the whole request if an old fragment maps to two new fragments."""
    seen: Dict[str, str] = {}
    for r in replacements:
        if r.old_content in seen and seen[r.old_content] != r.new_content:
            raise ConflictingReplacementError(r.old_content)
        seen[r.old_content] = r.new_content


# ---------------------------------------------------------------------------
# Matching
# ---------------------------------------------------------------------------

def normalize_line_endings(text: str) -> str:
    """Collapse CRLF and lone CR to LF."""
    return text.replace('\r\n', '\n').replace('\r', '\n')


def _scan(content: str, search: str) -> List[int]:
    """Offsets of all non-overlapping occurrences, left to right."""
    hits = []
    if not search:
        return hits
    start = 0
    while True:
        idx = content.find(search, start)
        if idx == -1:
            break
        hits.append(idx)
        start = idx + len(search)
    return hits


def find_exact_matches(content: str, search: str) -> List[MatchSpan]:
    """Find all exact occurrences of search in content."""
    return [
        MatchSpan(start=idx, end=idx + len(search), matched_text=search)
        for idx in _scan(content, search)
    ]


def map_normalized_offset_to_original(original: str, normalized_offset: int) -> int:
    """Translate an offset in normalize_line_endings(original) back to original.

    A CRLF pair is one normalized unit but two original characters; every
    other character (lone CR included) maps one to one.
    """
    orig_pos = 0
    norm_pos = 0
    length = len(original)
    while norm_pos < normalized_offset and orig_pos < length:
        if original[orig_pos] == '\r' and orig_pos + 1 < length and original[orig_pos + 1] == '\n':
            orig_pos += 2
        else:
            orig_pos += 1
        norm_pos += 1
    return orig_pos


def find_normalized_line_ending_matches(content: str, search: str) -> List[MatchSpan]:
    """Match after normalizing line endings on both sides, mapping offsets back."""
    normalized_content = normalize_line_endings(content)
    normalized_search = normalize_line_endings(search)

    matches = []
    for idx in _scan(normalized_content, normalized_search):
        start = map_normalized_offset_to_original(content, idx)
        end = map_normalized_offset_to_original(content, idx + len(normalized_search))
        matches.append(MatchSpan(start=start, end=end, matched_text=content[start:end]))
    return matches


def _split_lines(content: str) -> Tuple[List[str], List[int]]:
    """Split on CRLF/LF, returning (lines, start offset of each line)."""
    lines = []
    starts = []
    pos = 0
    for m in _LINE_BREAK.finditer(content):
        lines.append(content[pos:m.start()])
        starts.append(pos)
        pos = m.end()
    lines.append(content[pos:])
    starts.append(pos)
    return lines, starts


def find_line_trimmed_matches(content: str, search: str) -> List[MatchSpan]:
    """Return the first line whose trimmed form equals the trimmed search.

    Single-line only and never more than one span.
    """
    trimmed_search = search.strip()
    lines, starts = _split_lines(content)
    for line, start in zip(lines, starts):
        if line.strip() == trimmed_search:
            return [MatchSpan(start=start, end=start + len(line), matched_text=line)]
    return []


def find_fuzzy_multiline_matches(content: str, search: str) -> List[MatchSpan]:
    """Match the non-blank trimmed lines of search, skipping blank content lines.

    The span runs from the start of the first matched line to the end of the
    last matched line; blank lines after it are not part of the span. Every
    line equal to the first skeleton line is tried as a start, so spans of a
    repeated block can overlap.
    """
    skeleton = [line.strip() for line in _LINE_BREAK.split(search)]
    skeleton = [line for line in skeleton if line]
    if not skeleton:
        return []

    lines, starts = _split_lines(content)
    trimmed = [line.strip() for line in lines]
    matches = []

    for candidate in range(len(lines)):
        if not trimmed[candidate] or trimmed[candidate] != skeleton[0]:
            continue

        wanted = 1
        idx = candidate + 1
        last_matched = candidate
        while wanted < len(skeleton) and idx < len(lines):
            if not trimmed[idx]:
                idx += 1
            elif trimmed[idx] == skeleton[wanted]:
                last_matched = idx
                wanted += 1
                idx += 1
            else:
                break

        if wanted == len(skeleton):
            start = starts[candidate]
            end = starts[last_matched] + len(lines[last_matched])
            matches.append(MatchSpan(start=start, end=end, matched_text=content[start:end]))

    return matches


STRATEGIES: List[Tuple[str, Callable[[str, str], List[MatchSpan]]]] = [
    (STRATEGY_EXACT, find_exact_matches),
    (STRATEGY_NORMALIZED, find_normalized_line_ending_matches),
    (STRATEGY_LINE_TRIMMED, find_line_trimmed_matches),
    (STRATEGY_FUZZY, find_fuzzy_multiline_matches),
]


def find_matches(content: str, search: str) -> MatchSet:
    """Try each strategy in order; the first one with any spans wins."""
    for name, strategy in STRATEGIES:
        spans = strategy(content, search)
        if spans:
            logger.debug("strategy %s matched %d span(s)", name, len(spans))
            return MatchSet(spans=spans, strategy=name)
    logger.debug("no strategy matched %r", truncate_for_error(search))
    return MatchSet(spans=[], strategy=STRATEGY_NONE)


# ---------------------------------------------------------------------------
# Applying
# ---------------------------------------------------------------------------

def detect_line_ending(text: str) -> str:
    """CRLF if present anywhere, else CR, else LF."""
    if '\r\n' in text:
        return '\r\n'
    if '\r' in text:
        return '\r'
    return '\n'


def convert_line_endings(text: str, line_ending: str) -> str:
    normalized = normalize_line_endings(text)
    if line_ending == '\n':
        return normalized
    return normalized.replace('\n', line_ending)


def _leading_whitespace(line: str) -> str:
    return _LEADING_WS.match(line).group(0)


def _base_indent(lines: List[str]) -> str:
    for line in lines:
        if line.strip():
            return _leading_whitespace(line)
    return ''


def preserve_indentation(matched_text: str, new_content: str, line_ending: str) -> str:
    """Re-indent new_content so it sits at the matched text's base indentation.

    Relative nesting below the new content's own base indent is kept, lines
    shallower than that base are flattened onto it, and blank lines lose all
    whitespace. When the matched text is tab-indented, each run of four
    spaces in the resulting indent becomes a tab.
    """
    original_base = _base_indent(_LINE_BREAK.split(matched_text))
    uses_tabs = '\t' in original_base

    new_lines = _LINE_BREAK.split(new_content)
    new_base = _base_indent(new_lines)

    result = []
    for line in new_lines:
        if not line.strip():
            result.append('')
            continue

        current = _leading_whitespace(line)
        if current.startswith(new_base):
            relative = current[len(new_base):]
        else:
            relative = ''

        indent = original_base + relative
        if uses_tabs and '\t' not in relative:
            indent = indent.replace('    ', '\t')
        result.append(indent + line.strip())

    return line_ending.join(result)


def _render(span: MatchSpan, new_content: str, line_ending: str) -> str:
    converted = convert_line_endings(new_content, line_ending)
    return preserve_indentation(span.matched_text, converted, line_ending)


def replace_single_match(content: str, span: MatchSpan, new_content: str) -> str:
    line_ending = detect_line_ending(content)
    replacement = _render(span, new_content, line_ending)
    return content[:span.start] + replacement + content[span.end:]


def non_overlapping_spans(spans: List[MatchSpan]) -> List[MatchSpan]:
    """Keep spans left to right, dropping any that start inside a kept one."""
    kept: List[MatchSpan] = []
    for span in sorted(spans, key=lambda s: s.start):
        if not kept or span.start >= kept[-1].end:
            kept.append(span)
    return kept


def replace_all_matches(content: str, spans: List[MatchSpan], new_content: str) -> str:
    """Replace every span, highest offset first so lower offsets stay valid.

    Overlapping spans (a repeated fuzzy block) are reduced to the leftmost
    non-overlapping set first.
    """
    line_ending = detect_line_ending(content)
    result = content
    for span in reversed(non_overlapping_spans(spans)):
        replacement = _render(span, new_content, line_ending)
        result = result[:span.start] + replacement + result[span.end:]
    return result


def truncate_for_error(text: str, max_length: int = ERROR_SNIPPET_LIMIT) -> str:
    """Shorten long fragments to head + '...' + tail for error messages."""
    if len(text) <= max_length:
        return text
    half = max_length // 2 - 3
    return text[:half] + '...' + text[len(text) - half:]


def not_found_message(fragment: str) -> str:
    return f'Content to replace not found: "{truncate_for_error(fragment)}"'


def multiple_occurrences_message(fragment: str) -> str:
    return (
        f'Multiple occurrences found for: "{truncate_for_error(fragment)}". '
        "Set 'multiple' to true if multiple occurrences of the oldContent "
        "are expected to be replaced at once."
    )


def apply_replacements(
    original_content: str, replacements: List[ReplacementLike]
) -> ReplaceResult:
    """Apply replacements in order, each one seeing the previous one's output.

    Conflicting replacements abort the whole call with the original content
    and a single error. Not-found and ambiguous entries are skipped with one
    error each while the rest are still applied.
    """
    entries = _coerce(replacements)
    try:
        plan_replacements(entries)
    except ConflictingReplacementError as e:
        logger.debug("conflicting replacements, nothing applied")
        return ReplaceResult(updated_content=original_content, errors=[str(e)])

    content = original_content
    errors: List[str] = []
    outcomes: List[ReplacementOutcome] = []

    for entry in entries:
        if entry.old_content == '':
            content = entry.new_content + content
            outcomes.append(ReplacementOutcome(status="prepended"))
            continue

        match_set = find_matches(content, entry.old_content)
        count = len(match_set.spans)

        if count == 0:
            errors.append(not_found_message(entry.old_content))
            outcomes.append(ReplacementOutcome(status="not_found"))
        elif count == 1:
            content = replace_single_match(content, match_set.spans[0], entry.new_content)
            outcomes.append(ReplacementOutcome("replaced", match_set.strategy, 1))
        elif entry.multiple:
            content = replace_all_matches(content, match_set.spans, entry.new_content)
            replaced = len(non_overlapping_spans(match_set.spans))
            outcomes.append(ReplacementOutcome("replaced", match_set.strategy, replaced))
        else:
            errors.append(multiple_occurrences_message(entry.old_content))
            outcomes.append(ReplacementOutcome("ambiguous", match_set.strategy, count))

    return ReplaceResult(updated_content=content, errors=errors, outcomes=outcomes)


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------

def _read_text(file_path: str) -> str:
    # Bytes in, so CRLF and CR survive untouched for the engine to see.
    with open(file_path, 'rb') as f:
        return f.read().decode('utf-8', errors='replace')


def _compute_diff(old_content: str, new_content: str, file_path: str) -> str:
    """Compute a unified diff between old and new content."""
    old_lines = old_content.splitlines(keepends=True)
    new_lines = new_content.splitlines(keepends=True)
    diff_lines = difflib.unified_diff(
        old_lines, new_lines,
        fromfile=f"a/{os.path.basename(file_path)}",
        tofile=f"b/{os.path.basename(file_path)}",
    )
    return ''.join(diff_lines)


def apply_to_file(
    file_path: str,
    replacements: List[ReplacementLike],
    dry_run: bool = False,
) -> FileResult:
    """Apply replacements to a file; nothing is written if any entry fails."""
    try:
        content = _read_text(file_path)
    except FileNotFoundError:
        return FileResult(status="error", file=file_path, errors=[f"File not found: {file_path}"])
    except OSError as e:
        return FileResult(status="error", file=file_path, errors=[str(e)])

    try:
        result = apply_replacements(content, replacements)
    except ValueError as e:
        return FileResult(status="error", file=file_path, errors=[str(e)])

    strategies = [o.strategy for o in result.outcomes]
    if result.errors:
        return FileResult(
            status="failed",
            file=file_path,
            errors=result.errors,
            strategies=strategies,
            ambiguous=any(o.status == "ambiguous" for o in result.outcomes),
        )

    if result.updated_content == content:
        return FileResult(status="unchanged", file=file_path, strategies=strategies)

    diff_text = _compute_diff(content, result.updated_content, file_path)
    if not dry_run:
        with open(file_path, 'wb') as f:
            f.write(result.updated_content.encode('utf-8'))
        logger.info("applied %d replacement(s) to %s", len(result.outcomes), file_path)

    return FileResult(
        status="applied",
        file=file_path,
        strategies=strategies,
        diff=diff_text,
    )


def locate_in_file(file_path: str, fragment: str) -> MatchSet:
    """Run the matcher against a file's content without changing it."""
    return find_matches(_read_text(file_path), fragment)


def result_to_dict(result: FileResult) -> dict:
    """Convert FileResult to JSON-serializable dict."""
    d = {"status": result.status, "file": result.file}
    if result.errors:
        d["errors"] = result.errors
    if result.strategies:
        d["strategies"] = result.strategies
    if result.diff is not None:
        d["diff"] = result.diff
    return d


def match_set_to_dict(match_set: MatchSet) -> dict:
    if not match_set.spans:
        return {"status": "no_match"}
    return {
        "status": "found",
        "strategy": match_set.strategy,
        "count": len(match_set.spans),
        "spans": [
            {"start": s.start, "end": s.end, "matched_text": s.matched_text}
            for s in match_set.spans
        ],
    }


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def setup_logging(verbose: bool = False) -> None:
    """Send replacekit logs to stderr; level from --verbose or RK_LOG_LEVEL."""
    level_name = os.getenv("RK_LOG_LEVEL", "WARNING").upper()
    level = LOG_LEVELS.get(level_name)
    if level is None:
        print(
            f"Warning: Invalid RK_LOG_LEVEL '{os.getenv('RK_LOG_LEVEL')}'. "
            f"Valid values: {', '.join(LOG_LEVELS)}. Using WARNING.",
            file=sys.stderr,
        )
        level = logging.WARNING
    if verbose:
        level = logging.DEBUG

    logger.setLevel(level)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
        logger.addHandler(handler)


def _edit_from_dict(data: dict, default_file: Optional[str] = None) -> dict:
    if not isinstance(data, dict):
        raise ValueError("Each edit must be a JSON object")
    file_path = data.get("file", default_file) or ""
    if "replacements" in data:
        raw = data["replacements"]
    elif "old_text" in data:
        raw = [{
            "oldContent": data["old_text"],
            "newContent": data.get("new_text", ""),
            "multiple": data.get("multiple", False),
        }]
    else:
        raise ValueError("Edit must contain 'replacements' or 'old_text'")
    if not isinstance(raw, list):
        raise ValueError("'replacements' must be a list")
    return {"file": file_path, "replacements": [replacement_from_dict(r) for r in raw]}


def parse_edit_input(args) -> List[dict]:
    """Parse edit instructions from CLI args, an edit file or stdin."""
    if args.stdin:
        data = json.load(sys.stdin)
    elif args.edit:
        with open(args.edit, 'r') as f:
            data = json.load(f)
    elif args.file and args.old is not None and args.new is not None:
        return [{
            "file": args.file,
            "replacements": [Replacement(args.old, args.new, args.multiple)],
        }]
    else:
        raise ValueError("Must provide --file/--old/--new, --edit <file>, or --stdin")

    if isinstance(data, dict) and "edits" in data:
        if not isinstance(data["edits"], list):
            raise ValueError("'edits' must be a list")
        return [_edit_from_dict(e, args.file) for e in data["edits"]]
    return [_edit_from_dict(data, args.file)]


def _exit_code(ambiguous: bool, failed: bool) -> int:
    if ambiguous:
        return 2
    return 1 if failed else 0


def _cmd_apply(args) -> int:
    try:
        edits = parse_edit_input(args)
    except (ValueError, FileNotFoundError, json.JSONDecodeError) as e:
        print(json.dumps({"status": "error", "errors": [str(e)]}))
        return 1

    results = []
    ambiguous = failed = False
    for edit in edits:
        result = apply_to_file(edit["file"], edit["replacements"], dry_run=args.dry_run)
        if args.diff and result.diff:
            print(result.diff, file=sys.stderr, end='')
        results.append(result_to_dict(result))
        ambiguous = ambiguous or result.ambiguous
        failed = failed or result.status in ("failed", "error")

    if len(results) == 1:
        print(json.dumps(results[0], indent=2))
    else:
        print(json.dumps(results, indent=2))
    return _exit_code(ambiguous, failed)


def _cmd_replace(args) -> int:
    try:
        if args.input:
            with open(args.input, 'r', newline='') as f:
                data = json.load(f)
        else:
            data = json.load(sys.stdin)
        if not isinstance(data, dict):
            raise ValueError("Input must be a JSON object with 'content' and 'replacements'")
        content = data.get("content", "")
        replacements = [replacement_from_dict(r) for r in data.get("replacements", [])]
    except (ValueError, OSError) as e:
        print(json.dumps({"status": "error", "errors": [str(e)]}))
        return 1

    result = apply_replacements(content, replacements)
    print(json.dumps(result.to_dict(), indent=2))
    ambiguous = any(o.status == "ambiguous" for o in result.outcomes)
    return _exit_code(ambiguous, bool(result.errors))


def _cmd_match(args) -> int:
    try:
        match_set = locate_in_file(args.file, args.old)
    except (FileNotFoundError, OSError) as e:
        print(json.dumps({"status": "error", "file": args.file, "errors": [str(e)]}))
        return 1
    out = match_set_to_dict(match_set)
    out["file"] = args.file
    print(json.dumps(out, indent=2))
    return 0 if match_set.spans else 1


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="rk",
        description="ReplaceKit — fuzzy content replacement for LLM editing tools",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Log matching decisions to stderr"
    )
    sub = parser.add_subparsers(dest="command")

    apply_parser = sub.add_parser("apply", help="Apply replacements to file(s)")
    apply_parser.add_argument("--file", help="Target file path")
    apply_parser.add_argument("--old", help="Content to find")
    apply_parser.add_argument("--new", help="Replacement content")
    apply_parser.add_argument(
        "--multiple",
        action="store_true",
        help="Replace every occurrence of --old instead of requiring exactly one",
    )
    apply_parser.add_argument("--edit", help="JSON edit instruction file")
    apply_parser.add_argument(
        "--stdin", action="store_true", help="Read JSON from stdin"
    )
    apply_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would change without writing",
    )
    apply_parser.add_argument(
        "--diff",
        action="store_true",
        help="Print unified diff to stderr",
    )

    replace_parser = sub.add_parser(
        "replace", help="Apply replacements to JSON-supplied content (no files)"
    )
    source = replace_parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--input", help="JSON file with content and replacements")
    source.add_argument("--stdin", action="store_true", help="Read JSON from stdin")

    match_parser = sub.add_parser("match", help="Show where content would match")
    match_parser.add_argument("--file", required=True, help="File to search")
    match_parser.add_argument("--old", required=True, help="Content to find")

    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    if args.command == "apply":
        return _cmd_apply(args)
    if args.command == "replace":
        return _cmd_replace(args)
    if args.command == "match":
        return _cmd_match(args)

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
