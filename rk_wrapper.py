"""
ReplaceKit Python Wrapper — importable API for fuzzy content replacement.

Zero dependencies (like rk.py itself). Import and use directly:

    from rk_wrapper import ReplaceKit

    rk = ReplaceKit()
    result = rk.edit("app.py", [{"oldContent": "def old():", "newContent": "def new():"}])
    print(result.success, result.strategies)
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import List, Optional

# Import core functions from rk.py (same directory)
from rk import (
    apply_replacements,
    apply_to_file,
    find_matches,
    MatchSet,
    ReplaceResult,
    ReplacementLike,
    _compute_diff,
    _read_text,
)


@dataclass
class EditResponse:
    """Result of an edit operation."""
    success: bool
    file: str
    changed: bool = False
    strategies: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    diff: Optional[str] = None

    def to_dict(self) -> dict:
        d = {"success": self.success, "file": self.file, "changed": self.changed}
        if self.strategies:
            d["strategies"] = self.strategies
        if self.errors:
            d["errors"] = self.errors
        if self.diff:
            d["diff"] = self.diff
        return d

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)


class ReplaceKit:
    """
    Fuzzy content replacement toolkit.

    Usage:
        rk = ReplaceKit(show_diff=True)
        result = rk.replace(content, replacements)
        response = rk.edit("file.py", replacements)
        diff_str = rk.diff("file.py", replacements)
    """

    def __init__(self, show_diff: bool = False, dry_run: bool = False):
        self.show_diff = show_diff
        self.dry_run = dry_run

    def replace(self, content: str, replacements: List[ReplacementLike]) -> ReplaceResult:
        """Apply replacements to a string. Never touches the filesystem."""
        return apply_replacements(content, replacements)

    def locate(self, content: str, old_content: str) -> MatchSet:
        """Return the spans old_content would match and the strategy that found them."""
        return find_matches(content, old_content)

    def edit(
        self,
        file: str,
        replacements: List[ReplacementLike],
        show_diff: Optional[bool] = None,
        dry_run: Optional[bool] = None,
    ) -> EditResponse:
        """
        Apply replacements to a file.

        Args:
            file: Path to the file to edit.
            replacements: Replacement objects or dicts with oldContent/newContent/multiple.
            show_diff: Include unified diff in response.
            dry_run: Compute the result without writing the file.

        Returns:
            EditResponse; on any failure the file is left as it was.
        """
        do_diff = show_diff if show_diff is not None else self.show_diff
        do_dry_run = dry_run if dry_run is not None else self.dry_run

        result = apply_to_file(file, replacements, dry_run=do_dry_run)
        ok = result.status in ("applied", "unchanged")

        return EditResponse(
            success=ok,
            file=file,
            changed=result.status == "applied",
            strategies=result.strategies,
            errors=result.errors,
            diff=result.diff if do_diff else None,
        )

    def diff(self, file: str, replacements: List[ReplacementLike]) -> Optional[str]:
        """
        Preview the diff that would result from an edit, without applying it.

        Returns:
            Unified diff string, or None if the file cannot be read, a replacement
            is malformed, or any replacement fails.
        """
        try:
            content = _read_text(file)
            result = apply_replacements(content, replacements)
        except (OSError, ValueError):
            return None
        if result.errors:
            return None
        return _compute_diff(content, result.updated_content, file)

    def batch_edit(self, edits: List[dict]) -> List[EditResponse]:
        """
        Apply multiple edits. Each dict should have: file, replacements.

        Returns:
            List of EditResponse, one per edit. Stops on first failure.
        """
        results = []
        for edit in edits:
            resp = self.edit(file=edit["file"], replacements=edit["replacements"])
            results.append(resp)
            if not resp.success:
                break
        return results

    # --- Tool definition for LLM APIs ---

    @staticmethod
    def _parameters() -> dict:
        return {
            "type": "object",
            "properties": {
                "path": {"type": "string", "description": "Path to the file to edit"},
                "replacements": {
                    "type": "array",
                    "description": "An array of replacement objects, each containing oldContent and newContent strings.",
                    "items": {
                        "type": "object",
                        "properties": {
                            "oldContent": {"type": "string", "description": "The exact content to be replaced"},
                            "newContent": {"type": "string", "description": "The new content to insert"},
                            "multiple": {
                                "type": "boolean",
                                "description": "Set to true if multiple occurrences of the oldContent are expected to be replaced.",
                            },
                        },
                        "required": ["oldContent", "newContent"],
                    },
                },
            },
            "required": ["path", "replacements"],
        }

    @staticmethod
    def anthropic_tool_schema() -> dict:
        """Return the Anthropic tool_use schema for ReplaceKit edits."""
        return {
            "name": "replace_content_in_file",
            "description": (
                "Replace sections of an existing file by listing old content to "
                "match and new content to put in its place. Tolerates line ending "
                "and indentation differences. For deletions, use empty newContent."
            ),
            "input_schema": ReplaceKit._parameters(),
        }

    @staticmethod
    def openai_function_schema() -> dict:
        """Return the OpenAI function calling schema for ReplaceKit edits."""
        return {
            "type": "function",
            "function": {
                "name": "replace_content_in_file",
                "description": (
                    "Replace sections of an existing file by listing old content to "
                    "match and new content to put in its place."
                ),
                "parameters": ReplaceKit._parameters(),
            },
        }
