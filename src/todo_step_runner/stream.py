"""Render an agent's ``stream-json`` output as readable progress.

Consecutive tool calls of the same kind collapse into one line
("✓ Read 4 files"); shell commands are always shown individually.
Assistant text is printed as it streams.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import PurePath
from typing import Any, Optional

from loguru import logger
from rich.console import Console

_SHELL_MAX_CHARS = 80

# tool key -> (verb, category, has path argument)
_TOOL_KINDS: dict[str, tuple[str, str, bool]] = {
    "readToolCall": ("Reading", "read", True),
    "lsToolCall": ("Listing", "read", True),
    "globToolCall": ("Searching files", "search", False),
    "grepToolCall": ("Searching content", "search", False),
    "writeToolCall": ("Writing", "write", True),
    "strReplaceToolCall": ("Editing", "edit", True),
    "editToolCall": ("Editing", "edit", True),
}

_GROUP_LABELS = {
    "read": "Read {count} files",
    "search": "{count} searches",
    "write": "Wrote {count} files",
    "edit": "Edited {count} files",
}


def parse_line(line: str) -> Optional[dict[str, Any]]:
    """Decode one JSON event, or None for blank, non-JSON or non-object lines."""
    line = line.strip()
    if not line.startswith("{"):
        return None
    try:
        data = json.loads(line)
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


def _tool_entry(tool_call: Any) -> tuple[Optional[str], dict[str, Any]]:
    if not isinstance(tool_call, dict):
        return None, {}
    for key, value in tool_call.items():
        if key == "args":
            continue
        args = value.get("args", {}) if isinstance(value, dict) else {}
        return key, args if isinstance(args, dict) else {}
    return None, {}


def _short_command(command: str) -> str:
    if command.startswith("cd ") and (" && " in command or "; " in command):
        for sep in ("&&", ";"):
            if sep in command:
                command = command.split(sep, 1)[1]
                break
        command = command.lstrip()
    if len(command) > _SHELL_MAX_CHARS:
        command = command[: _SHELL_MAX_CHARS - 3] + "..."
    return command


def describe_tool(tool_call: Any) -> tuple[str, str]:
    """Return ``(display name, category)`` for a tool call payload."""
    key, args = _tool_entry(tool_call)
    if key is None:
        return "Using tool", "other"
    if key in ("shellToolCall", "runToolCall", "runTerminalCommand"):
        return f"Running: {_short_command(str(args.get('command', '')))}", "shell"
    kind = _TOOL_KINDS.get(key)
    if kind is None:
        name = key[: -len("ToolCall")] if key.endswith("ToolCall") else key
        return f"Using {name}", "other"
    verb, category, has_path = kind
    path = args.get("path") if has_path else None
    if path:
        return f"{verb} {PurePath(str(path)).name}", category
    return verb, category


def summarize_tool_call(tool_call: Any, cwd: Optional[str] = None) -> str:
    _, args = _tool_entry(tool_call)
    path = args.get("path")
    if path:
        path = str(path)
        if cwd:
            path = path.replace(cwd, ".")
        if args.get("offset"):
            return f"path={path} offset={args['offset']}"
        return f"path={path}"
    if args.get("command"):
        return f"command={str(args['command'])[:50]}…"
    return ""


def summarize_result(event: Any) -> str:
    if not isinstance(event, dict):
        return ""
    parts = []
    if event.get("duration_ms") is not None:
        parts.append(f"duration_ms={event['duration_ms']}")
    if event.get("is_error") is not None:
        parts.append(f"is_error={event['is_error']}")
    result = event.get("result")
    if isinstance(result, str) and len(result) < 200:
        parts.append(f"result={result[:150]}…")
    return " ".join(parts)


def format_event(event: dict[str, Any]) -> str:
    """One-line debug rendering of any event."""
    event_type = event.get("type", "")
    subtype = event.get("subtype", "") or ""
    stamp = ""
    if isinstance(event.get("timestamp_ms"), (int, float)):
        stamp = datetime.fromtimestamp(event["timestamp_ms"] / 1000, tz=timezone.utc).isoformat() + " "
    if event_type == "tool_call":
        key, _ = _tool_entry(event.get("tool_call"))
        detail = summarize_tool_call(event.get("tool_call"))
        return f"{stamp}tool_call {subtype} {key or ''}{' ' + detail if detail else ''}".rstrip()
    if event_type == "result":
        return f"{stamp}result {subtype} {summarize_result(event)}".rstrip()
    return f"{stamp}{event_type} {subtype}".rstrip()


class StreamFormatter:
    """Stateful renderer fed one output line at a time."""

    def __init__(self, console: Optional[Console] = None) -> None:
        self.console = console or Console(highlight=False)
        self._group_category: Optional[str] = None
        self._group_count = 0
        self._group_last = ""
        self._streaming = False
        self._newline_needed = False

    def _print(self, text: str, end: str = "\n") -> None:
        self.console.print(text, end=end, markup=False, highlight=False, soft_wrap=True)

    def flush_group(self) -> None:
        if self._group_count == 0:
            return
        if self._group_count == 1:
            self._print(f"✓ {self._group_last}")
        else:
            label = _GROUP_LABELS.get(self._group_category or "", "{count} operations")
            self._print("✓ " + label.format(count=self._group_count))
        self._group_category = None
        self._group_count = 0
        self._group_last = ""

    def _tool_completed(self, event: dict[str, Any]) -> None:
        name, category = describe_tool(event.get("tool_call"))
        if category == "shell":
            self.flush_group()
            self._print(f"✓ {name}")
            return
        if self._group_category is not None and self._group_category != category:
            self.flush_group()
        self._group_category = category
        self._group_count += 1
        self._group_last = name

    def _assistant(self, event: dict[str, Any]) -> None:
        self.flush_group()
        if event.get("subtype") == "delta":
            delta = event.get("delta")
            text = delta.get("text") if isinstance(delta, dict) else delta
            if not isinstance(text, str):
                text = ""
            if not text:
                return
            if not self._streaming:
                self._print("")
                self._streaming = True
            self._print(text, end="")
            self._newline_needed = True
            return

        message = event.get("message")
        content = message.get("content") if isinstance(message, dict) else None
        text = ""
        if isinstance(content, list) and content and isinstance(content[0], dict):
            text = content[0].get("text") or ""
        elif isinstance(message, str):
            text = message
        if not isinstance(text, str):
            text = ""
        if text.strip() and not self._streaming:
            self._print("\n" + text)
            self._newline_needed = False
        if self._streaming and self._newline_needed:
            self._print("")
            self._newline_needed = False
        self._streaming = False

    def feed(self, line: str) -> None:
        event = parse_line(line)
        if event is None:
            return
        logger.trace(format_event(event))
        event_type = event.get("type")
        if event_type == "tool_call" and event.get("subtype") == "completed":
            self._tool_completed(event)
        elif event_type == "assistant":
            self._assistant(event)
        elif event_type == "system" and event.get("subtype") == "init":
            self._print(f"⚡ Agent started (model: {event.get('model') or 'auto'})")
        elif event_type == "result":
            self.flush_group()
            summary = summarize_result(event)
            if summary:
                self.console.print(summary, style="dim", markup=False, highlight=False)

    def __call__(self, line: str) -> None:
        self.feed(line)

    def finish(self) -> None:
        self.flush_group()
        if self._newline_needed:
            self._print("")
            self._newline_needed = False
