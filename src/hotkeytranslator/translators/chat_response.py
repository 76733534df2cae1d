"""Extract the assistant text from chat-completion responses.

Providers behind OpenRouter do not agree on the shape of ``message.content``:
it can be a plain string, an object with ``content``/``text``, or a list of
typed segments mixing reasoning with the actual answer. These helpers walk
all of those shapes and prefer segments that are explicitly output text.
"""

from __future__ import annotations

from typing import Any

OUTPUT_SEGMENT_TYPES = frozenset({"output_text", "message", "text", "tool_result"})
REASONING_SEGMENT_TYPES = frozenset({"reasoning", "thought"})


def _usable(text: Any) -> bool:
    return isinstance(text, str) and bool(text.strip())


def first_choice_content(choices: list[Any]) -> str | None:
    """Return the stripped content of the first choice that has any."""
    for choice in choices:
        content = _choice_content(choice)
        if _usable(content):
            return content.strip()
    return None


def _choice_content(choice: Any) -> str | None:
    if isinstance(choice, dict):
        for key in ("message", "content"):
            if key in choice:
                content = extract_content(choice[key])
                if _usable(content):
                    return content
    elif isinstance(choice, list):
        for nested in choice:
            content = _choice_content(nested)
            if _usable(content):
                return content
    return None


def extract_content(node: Any) -> str | None:
    """Return the text carried by a content node of any supported shape."""
    if isinstance(node, str):
        return node
    if isinstance(node, dict):
        return _object_content(node)
    if isinstance(node, list):
        return _array_content(node)
    return None


def _object_content(obj: dict[str, Any]) -> str | None:
    for key in ("content", "text", "message"):
        if key in obj:
            content = extract_content(obj[key])
            if _usable(content):
                return content
    return None


def _array_content(items: list[Any]) -> str | None:
    output: list[str] = []
    fallback: list[str] = []

    for item in items:
        text, is_output = _segment(item)
        if not _usable(text):
            continue
        (output if is_output else fallback).append(text)

    selected = output or fallback
    return "\n".join(selected) if selected else None


def _segment(item: Any) -> tuple[str | None, bool]:
    """Return (text, is_output_text) for one element of a content list."""
    if isinstance(item, str):
        return item, False

    if isinstance(item, dict):
        kind = item.get("type")
        kind = kind.lower() if isinstance(kind, str) else ""
        if kind in REASONING_SEGMENT_TYPES:
            return None, False

        if "text" in item:
            text = extract_content(item["text"])
        elif "content" in item:
            text = extract_content(item["content"])
        else:
            text = None
        return text, kind in OUTPUT_SEGMENT_TYPES

    if isinstance(item, list):
        return _array_content(item), False

    return None, False
