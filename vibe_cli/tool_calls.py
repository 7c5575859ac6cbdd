"""Recover tool-call requests from free-form model output.

Models are asked to emit tool calls as JSON inside a fenced block, but the
text that comes back ranges from strict JSON to loose object literals with
single quotes and bare keys. Extraction runs a chain of strategies over each
region of the response, strictest first:

1. ``strict_json``: a JSON object with a ``tool_calls`` array.
2. ``lenient_key_scan``: best-effort repair of a block that carries the
   ``tool_calls`` marker but is not valid JSON.
3. ``regex_pairs``: ``"name": "<id>"`` followed by a ``"params": {...}``
   object, with the arguments parsed by ``ARGUMENT_PARSERS`` (normalized JSON,
   then a single ``path`` pair).

Every fenced block is scanned on its own, as is the prose between blocks, so
several calls in one response are all recovered in text order. Nothing here
raises on malformed input: a region that yields nothing is simply skipped.
"""

import json
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator

from vibe_cli.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class ToolCallCandidate:
    """A tool call recovered from model output, not yet checked against the registry."""

    name: str
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class TextRegion:
    """A slice of the response: one fenced block or the prose between blocks."""

    text: str
    fenced: bool
    language: str = ""


Strategy = Callable[[str], list[ToolCallCandidate]]
ArgumentParser = Callable[[str], dict[str, Any] | None]

TOOL_CALLS_MARKER = "tool_calls"
SCAN_MARKERS = (TOOL_CALLS_MARKER, '"name"', '"params"')

_FENCE_RE = re.compile(r"```[ \t]*([\w+-]*)[ \t]*\n?(.*?)```", re.DOTALL)
_NAME_RE = re.compile(r"""["']name["']\s*:\s*["']([A-Za-z_][\w.-]*)["']""")
_PARAMS_KEY_RE = re.compile(r"""["']?(?:params|parameters)["']?\s*:\s*""")
_BARE_KEY_RE = re.compile(r"([{,]\s*)([A-Za-z_]\w*)(\s*:)")
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")
_UNESCAPED_DOUBLE_QUOTE_RE = re.compile(r'(?<!\\)"')
# A single quote opens a string only where a JSON value or key may start
_SINGLE_QUOTE_OPENERS = "[{:,"
_BARE_PATH_RE = re.compile(r"""["']?path["']?\s*:\s*["']?([^"',}\n]+?)["']?\s*(?:[,}\n]|$)""")


def split_regions(text: str) -> list[TextRegion]:
    """Split text into fenced blocks and the unfenced text around them, in order."""
    regions: list[TextRegion] = []
    cursor = 0
    for match in _FENCE_RE.finditer(text):
        before = text[cursor:match.start()]
        if before.strip():
            regions.append(TextRegion(before, fenced=False))
        regions.append(TextRegion(match.group(2), fenced=True, language=match.group(1).lower()))
        cursor = match.end()
    rest = text[cursor:]
    if rest.strip():
        regions.append(TextRegion(rest, fenced=False))
    return regions


def _string_end(text: str, start: int) -> int | None:
    """Index of the quote closing the string literal opened at ``start``."""
    quote = text[start]
    escaped = False
    for index in range(start + 1, len(text)):
        char = text[index]
        if escaped:
            escaped = False
        elif char == "\\":
            escaped = True
        elif char == quote:
            return index
    return None


def _opens_single_quoted(text: str, index: int) -> bool:
    before = text[:index].rstrip()
    return not before or before[-1] in _SINGLE_QUOTE_OPENERS


def _as_double_quoted(literal: str) -> str:
    inner = literal[1:-1].replace("\\'", "'")
    return '"' + _UNESCAPED_DOUBLE_QUOTE_RE.sub(r'\\"', inner) + '"'


def _split_literals(fragment: str) -> Iterator[tuple[str, bool]]:
    """Yield ``(text, is_string)`` pieces of an object literal, in order.

    Single-quoted strings are yielded already converted to double quotes.
    An unterminated string ends the scan; the rest is yielded as plain text.
    """
    plain_start = 0
    index = 0
    while index < len(fragment):
        char = fragment[index]
        if char == '"' or (char == "'" and _opens_single_quoted(fragment, index)):
            end = _string_end(fragment, index)
            if end is None:
                break
            if index > plain_start:
                yield fragment[plain_start:index], False
            literal = fragment[index:end + 1]
            yield (_as_double_quoted(literal) if char == "'" else literal), True
            index = plain_start = end + 1
            continue
        index += 1
    if plain_start < len(fragment):
        yield fragment[plain_start:], False


def normalize_json_fragment(fragment: str) -> str:
    """Repair common object-literal habits so ``json.loads`` can read the fragment.

    Single-quoted strings become double-quoted, bare keys are quoted and
    trailing commas are dropped. Text inside string literals is left alone.
    """
    pieces = []
    for text, is_string in _split_literals(fragment):
        if not is_string:
            text = _BARE_KEY_RE.sub(r'\1"\2"\3', text)
            text = _TRAILING_COMMA_RE.sub(r"\1", text)
        pieces.append(text)
    return "".join(pieces)


def loads_lenient(fragment: str) -> Any:
    """``json.loads`` the fragment as written, else after normalization.

    Raises:
        json.JSONDecodeError: neither form parses
    """
    try:
        return json.loads(fragment)
    except json.JSONDecodeError:
        return json.loads(normalize_json_fragment(fragment))


def find_balanced_object(text: str, start: int) -> tuple[str, int] | None:
    """Return the ``{...}`` object starting at ``start`` and the index after it.

    Braces inside string literals are ignored. Returns None when ``start`` is
    not an opening brace or the object is never closed.
    """
    if start >= len(text) or text[start] != "{":
        return None
    depth = 0
    index = start
    while index < len(text):
        char = text[index]
        if char in ("'", '"'):
            end = _string_end(text, index)
            if end is None:
                return None
            index = end + 1
            continue
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start:index + 1], index + 1
        index += 1
    return None


def _candidate_from_entry(entry: Any) -> ToolCallCandidate | None:
    if not isinstance(entry, dict):
        return None
    name = entry.get("name")
    if not isinstance(name, str) or not name.strip():
        return None
    arguments = entry.get("parameters", entry.get("params"))
    if arguments is None:
        arguments = {}
    if not isinstance(arguments, dict):
        return None
    return ToolCallCandidate(name=name.strip(), arguments=arguments)


def _candidates_from_payload(payload: Any) -> list[ToolCallCandidate]:
    if not isinstance(payload, dict):
        return []
    entries = payload.get(TOOL_CALLS_MARKER)
    if not isinstance(entries, list):
        return []
    candidates = []
    for entry in entries:
        candidate = _candidate_from_entry(entry)
        if candidate is not None:
            candidates.append(candidate)
    return candidates


def strict_json(text: str) -> list[ToolCallCandidate]:
    """Parse ``{"tool_calls": [...]}`` as strict JSON."""
    try:
        payload = json.loads(text)
    except json.JSONDecodeError:
        return []
    return _candidates_from_payload(payload)


def strict_json_object(text: str) -> list[ToolCallCandidate]:
    """Like ``strict_json`` but only for text that is a single JSON object."""
    stripped = text.strip()
    if not (stripped.startswith("{") and stripped.endswith("}")):
        return []
    return strict_json(stripped)


def _scan_ranges(lines: list[str]) -> Iterator[str]:
    """Yield line ranges that start at a marker line, longest first."""
    for start, line in enumerate(lines):
        if not any(marker in line for marker in SCAN_MARKERS):
            continue
        for end in range(len(lines), start, -1):
            chunk = "\n".join(lines[start:end]).strip().rstrip(",")
            if chunk:
                yield chunk


def lenient_key_scan(text: str) -> list[ToolCallCandidate]:
    """Rebuild a JSON object from a block that mentions ``tool_calls``."""
    if TOOL_CALLS_MARKER not in text:
        return []
    for chunk in _scan_ranges(text.splitlines()):
        if not chunk.startswith("{"):
            chunk = "{" + chunk + "}"
        try:
            payload = loads_lenient(chunk)
        except json.JSONDecodeError:
            continue
        candidates = _candidates_from_payload(payload)
        if not candidates:
            single = _candidate_from_entry(payload)
            candidates = [single] if single else []
        if candidates:
            return candidates
    return []


def normalized_json_arguments(fragment: str) -> dict[str, Any] | None:
    """Parse an argument object, normalizing quotes and keys if needed."""
    try:
        arguments = loads_lenient(fragment)
    except json.JSONDecodeError:
        return None
    return arguments if isinstance(arguments, dict) else None


def bare_path_arguments(fragment: str) -> dict[str, Any] | None:
    """Recover a lone ``path`` argument from a fragment that will not parse."""
    match = _BARE_PATH_RE.search(fragment)
    if not match:
        return None
    value = match.group(1).strip()
    if not value:
        return None
    return {"path": value}


ARGUMENT_PARSERS: tuple[ArgumentParser, ...] = (
    normalized_json_arguments,
    bare_path_arguments,
)


def parse_arguments(fragment: str) -> dict[str, Any] | None:
    """Run ``ARGUMENT_PARSERS`` in order; the first result wins."""
    for parser in ARGUMENT_PARSERS:
        arguments = parser(fragment)
        if arguments is not None:
            return arguments
    return None


def regex_pairs(text: str) -> list[ToolCallCandidate]:
    """Pair each ``"name": "<id>"`` with the params object that follows it."""
    matches = list(_NAME_RE.finditer(text))
    candidates: list[ToolCallCandidate] = []
    consumed_until = 0
    for index, match in enumerate(matches):
        if match.start() < consumed_until:
            # "name" key inside the previous call's params
            continue
        next_start = matches[index + 1].start() if index + 1 < len(matches) else len(text)
        params_key = _PARAMS_KEY_RE.search(text, match.end(), next_start)
        if params_key is None:
            continue

        brace = params_key.end()
        balanced = find_balanced_object(text, brace)
        if balanced is not None:
            fragment, consumed_until = balanced
        else:
            fragment = text[brace:next_start]

        arguments = parse_arguments(fragment)
        if arguments is None:
            log.debug("Discarding tool call with unreadable params", tool=match.group(1))
            continue
        candidates.append(ToolCallCandidate(name=match.group(1), arguments=arguments))
    return candidates


FENCED_STRATEGIES: tuple[Strategy, ...] = (
    strict_json,
    lenient_key_scan,
    regex_pairs,
)

UNFENCED_STRATEGIES: tuple[Strategy, ...] = (
    strict_json_object,
    regex_pairs,
)


def extract_from_region(region: TextRegion) -> list[ToolCallCandidate]:
    """Run the region's strategy chain; the first non-empty result wins."""
    strategies = FENCED_STRATEGIES if region.fenced else UNFENCED_STRATEGIES
    for strategy in strategies:
        try:
            candidates = strategy(region.text)
        except (ValueError, RecursionError) as e:
            log.debug("Tool call strategy failed", strategy=strategy.__name__, error=str(e))
            continue
        if candidates:
            log.debug(
                "Recovered tool calls",
                strategy=strategy.__name__,
                fenced=region.fenced,
                tools=[candidate.name for candidate in candidates],
            )
            return candidates
    return []


def extract_tool_calls(text: str) -> list[ToolCallCandidate]:
    """Return every tool call found in ``text``, in the order they appear.

    Unknown tool names are passed through; the registry rejects them.
    """
    if not text or not text.strip():
        return []
    candidates: list[ToolCallCandidate] = []
    for region in split_regions(text):
        candidates.extend(extract_from_region(region))
    return candidates
