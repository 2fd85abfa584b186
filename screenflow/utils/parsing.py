"""Shared parsing and LLM utilities for agent responses."""

import asyncio
import json
import re
from dataclasses import dataclass
from typing import Generic, TypeVar

from pydantic import BaseModel, ValidationError

_FENCE_RE = re.compile(r"```(?:json)?\s*\n?(.*?)\n?\s*```", re.DOTALL)
_HTML_OPEN_FENCE_RE = re.compile(r"\A\s*```(?:html)?[ \t]*\n?", re.IGNORECASE)
_HTML_CLOSE_FENCE_RE = re.compile(r"\n?[ \t]*```\s*\Z")

M = TypeVar("M", bound=BaseModel)


@dataclass(frozen=True)
class ParseResult(Generic[M]):
    """Either a validated value or the reason there is none."""

    value: M | None = None
    reason: str = ""

    @property
    def ok(self) -> bool:
        return self.value is not None


def strip_fences(text: str) -> str:
    """Strip markdown code fences from LLM output if present."""
    match = _FENCE_RE.search(text)
    return match.group(1).strip() if match else text.strip()


def find_balanced_braces(text: str) -> str | None:
    """Return the first complete ``{...}`` region, honouring JSON strings and escapes."""
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for i in range(start, len(text)):
            ch = text[i]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return text[start:i + 1]
        # Unbalanced from this opening brace; try the next one.
        start = text.find("{", start + 1)
    return None


def locate_structured_block(text: str) -> str | None:
    """Fenced block if present, otherwise the first balanced brace region."""
    match = _FENCE_RE.search(text)
    if match:
        candidate = match.group(1).strip()
        if candidate.startswith("{"):
            return candidate
    return find_balanced_braces(text)


def extract_structured_block(text: str, model: type[M]) -> ParseResult[M]:
    """Locate, decode and validate a structured block in free-form model output.

    Never raises: every failure is reported through ``ParseResult.reason``.
    """
    if not text or not text.strip():
        return ParseResult(reason="empty response")

    block = locate_structured_block(text)
    if block is None:
        return ParseResult(reason="no structured block found")

    try:
        data = json.loads(block)
    except json.JSONDecodeError as exc:
        return ParseResult(reason=f"invalid JSON: {exc.msg} at position {exc.pos}")

    if not isinstance(data, dict):
        return ParseResult(reason=f"expected an object, got {type(data).__name__}")

    try:
        return ParseResult(value=model.model_validate(data))
    except ValidationError as exc:
        return ParseResult(reason=f"schema mismatch: {exc.error_count()} error(s): {exc.errors()[0]['msg']}")


def strip_html_fences(text: str) -> str:
    """Clean generated markup: drop the fence around it, then one layer of enclosing quotes.

    Backticks inside the document (code samples in a <pre>, say) are kept.
    """
    html = _HTML_OPEN_FENCE_RE.sub("", text, count=1)
    html = _HTML_CLOSE_FENCE_RE.sub("", html, count=1).strip()
    if len(html) >= 2 and html.startswith('"') and html.endswith('"'):
        html = html[1:-1]
    return html


def response_text(response) -> str:
    """Flatten a chat model response to text (content may be a list of parts)."""
    content = getattr(response, "content", response)
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and part.get("type") == "text":
                parts.append(part.get("text", ""))
        return "".join(parts)
    return str(content or "")


async def invoke_with_timeout(llm, messages, timeout: float, config=None) -> str:
    """Call ``llm.ainvoke(messages)`` and return its text, abandoning it after *timeout* seconds.

    No retries: a failed call is reported to the stage, which degrades.
    """
    response = await asyncio.wait_for(llm.ainvoke(messages, config=config), timeout=timeout)
    return response_text(response)
