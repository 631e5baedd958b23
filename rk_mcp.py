#!/usr/bin/env python3
"""ReplaceKit MCP Server — Model Context Protocol server for content replacement.

Exposes ReplaceKit's replacement engine as MCP tools that any compatible
AI agent can use. Runs over stdio using JSON-RPC 2.0.

Tools provided:
  - replacekit_apply: Apply a list of replacements to a file
  - replacekit_apply_batch: Apply replacements to several files independently
  - replacekit_replace: Apply replacements to supplied content (no file access)
  - replacekit_match: Show where old content would match without applying

Usage:
  python rk_mcp.py          # stdio mode
"""

import json
import sys
from typing import Any, List

from rk import (
    apply_replacements,
    apply_to_file,
    locate_in_file,
    logger,
    match_set_to_dict,
    replacement_from_dict,
    result_to_dict,
    setup_logging,
    Replacement,
)

# MCP Protocol version
PROTOCOL_VERSION = "2024-11-05"
SERVER_NAME = "replacekit"
SERVER_VERSION = "0.1.0"

REPLACEMENTS_SCHEMA = {
    "type": "array",
    "description": (
        "An array of replacement objects, each containing oldContent and "
        "newContent strings. An empty oldContent prepends newContent."
    ),
    "items": {
        "type": "object",
        "properties": {
            "oldContent": {
                "type": "string",
                "description": "The exact content to be replaced",
            },
            "newContent": {
                "type": "string",
                "description": "The new content to insert in place of matched old content",
            },
            "multiple": {
                "type": "boolean",
                "description": "Set to true if multiple occurrences of the oldContent are expected to be replaced",
                "default": False,
            },
        },
        "required": ["oldContent", "newContent"],
    },
}

TOOLS = [
    {
        "name": "replacekit_apply",
        "description": (
            "Replace sections of an existing file. Each oldContent is located "
            "with 4-strategy matching (exact → normalized line endings → "
            "trimmed line → multi-line fuzzy) and replaced keeping the file's "
            "indentation and line endings. Replacements are applied in order. "
            "If any replacement fails, the file is left untouched."
        ),
        "inputSchema": {
            "type": "object",
            "properties": {
                "file": {
                    "type": "string",
                    "description": "Path to the file to edit",
                },
                "replacements": REPLACEMENTS_SCHEMA,
                "dry_run": {
                    "type": "boolean",
                    "description": "If true, show what would change without writing",
                    "default": False,
                },
            },
            "required": ["file", "replacements"],
        },
    },
    {
        "name": "replacekit_apply_batch",
        "description": (
            "Apply replacements to several files. Each edit is applied "
            "independently. Returns an array of results."
        ),
        "inputSchema": {
            "type": "object",
            "properties": {
                "edits": {
                    "type": "array",
                    "description": "Array of edit objects",
                    "items": {
                        "type": "object",
                        "properties": {
                            "file": {"type": "string"},
                            "replacements": REPLACEMENTS_SCHEMA,
                        },
                        "required": ["file", "replacements"],
                    },
                },
                "dry_run": {
                    "type": "boolean",
                    "default": False,
                },
            },
            "required": ["edits"],
        },
    },
    {
        "name": "replacekit_replace",
        "description": (
            "Apply replacements to the given content and return the updated "
            "content together with any errors. Does not touch the filesystem."
        ),
        "inputSchema": {
            "type": "object",
            "properties": {
                "content": {
                    "type": "string",
                    "description": "Original content",
                },
                "replacements": REPLACEMENTS_SCHEMA,
            },
            "required": ["content", "replacements"],
        },
    },
    {
        "name": "replacekit_match",
        "description": (
            "Find where oldContent would match in a file without modifying it. "
            "Returns the winning strategy and every matched span. Useful for "
            "checking uniqueness before replacing."
        ),
        "inputSchema": {
            "type": "object",
            "properties": {
                "file": {
                    "type": "string",
                    "description": "Path to the file to search",
                },
                "old_content": {
                    "type": "string",
                    "description": "Content to find",
                },
            },
            "required": ["file", "old_content"],
        },
    },
]


def make_response(id: Any, result: Any) -> dict:
    return {"jsonrpc": "2.0", "id": id, "result": result}


def make_error(id: Any, code: int, message: str, data: Any = None) -> dict:
    err = {"code": code, "message": message}
    if data is not None:
        err["data"] = data
    return {"jsonrpc": "2.0", "id": id, "error": err}


def _text_result(id: Any, payload: Any, is_error: bool) -> dict:
    return make_response(id, {
        "content": [{"type": "text", "text": json.dumps(payload, indent=2)}],
        "isError": is_error,
    })


def _parse_replacements(raw: Any) -> List[Replacement]:
    if not isinstance(raw, list):
        raise ValueError("'replacements' must be an array")
    return [replacement_from_dict(r) for r in raw]


def handle_initialize(id: Any, params: dict) -> dict:
    return make_response(id, {
        "protocolVersion": PROTOCOL_VERSION,
        "capabilities": {
            "tools": {},
        },
        "serverInfo": {
            "name": SERVER_NAME,
            "version": SERVER_VERSION,
        },
    })


def handle_tools_list(id: Any, params: dict) -> dict:
    return make_response(id, {"tools": TOOLS})


def handle_tool_call(id: Any, params: dict) -> dict:
    name = params.get("name", "")
    args = params.get("arguments", {})

    try:
        if name == "replacekit_apply":
            result = apply_to_file(
                args["file"],
                _parse_replacements(args["replacements"]),
                dry_run=args.get("dry_run", False),
            )
            return _text_result(
                id, result_to_dict(result), result.status in ("failed", "error")
            )

        elif name == "replacekit_apply_batch":
            dry_run = args.get("dry_run", False)
            results = []
            any_error = False
            for edit in args.get("edits", []):
                r = apply_to_file(
                    edit["file"],
                    _parse_replacements(edit["replacements"]),
                    dry_run=dry_run,
                )
                results.append(result_to_dict(r))
                if r.status in ("failed", "error"):
                    any_error = True
            return _text_result(id, results, any_error)

        elif name == "replacekit_replace":
            result = apply_replacements(
                args["content"], _parse_replacements(args["replacements"])
            )
            return _text_result(id, result.to_dict(), not result.ok)

        elif name == "replacekit_match":
            file_path = args["file"]
            try:
                match_set = locate_in_file(file_path, args["old_content"])
            except (FileNotFoundError, OSError) as e:
                return _text_result(id, {"status": "error", "errors": [str(e)]}, True)
            return _text_result(id, match_set_to_dict(match_set), not match_set.spans)

    except (KeyError, TypeError, ValueError) as e:
        return make_error(id, -32602, f"Invalid params for {name}: {e}")

    return make_error(id, -32601, f"Unknown tool: {name}")


HANDLERS = {
    "initialize": handle_initialize,
    "notifications/initialized": None,  # notification, no response
    "tools/list": handle_tools_list,
    "tools/call": handle_tool_call,
}


def _write(resp: dict) -> None:
    sys.stdout.write(json.dumps(resp) + "\n")
    sys.stdout.flush()


def run_stdio():
    """Main stdio loop — read JSON-RPC messages, dispatch, respond."""
    setup_logging()
    for line in sys.stdin:
        line = line.strip()
        if not line:
            continue
        try:
            msg = json.loads(line)
        except json.JSONDecodeError:
            _write(make_error(None, -32700, "Parse error"))
            continue

        method = msg.get("method", "")
        id = msg.get("id")
        params = msg.get("params", {})

        handler = HANDLERS.get(method)
        if handler is None:
            if id is not None and method not in HANDLERS:
                logger.debug("unknown method %s", method)
                _write(make_error(id, -32601, f"Method not found: {method}"))
            # notifications (no id) or known notification methods → no response
            continue

        _write(handler(id, params))


if __name__ == "__main__":
    run_stdio()
