"""Yarn v1 lockfile parser and serializer.

The serializer reproduces the layout ``yarn`` itself writes: a fixed header,
one block per resolved package with its range keys grouped on the header
line, ``name``/``version``/``resolved``/... ahead of the remaining keys, and
JSON quoting for any string that would otherwise be ambiguous. Parsing a
lockfile written by ``yarn`` and serializing it again is byte-identical.
"""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any

from yarn2nix.errors import LockfileParseError
from yarn2nix.lockfile.model import LockedEntry, Lockfile

HEADER = (
    "# THIS IS AN AUTOGENERATED FILE. DO NOT EDIT THIS FILE DIRECTLY.",
    "# yarn lockfile v1",
)

KEY_PRIORITIES: dict[str, int] = {
    "name": 1,
    "version": 2,
    "uid": 3,
    "resolved": 4,
    "integrity": 5,
    "registry": 6,
    "dependencies": 7,
}

_TOKEN_PATTERN = re.compile(r'"(?:[^"\\]|\\.)*"|[^\s,:"]+|[,:"]')
_WRAP_PATTERN = re.compile(r'[:\s\\",\[\]]')
_CONFLICT_MARKERS = ("<<<<<<<", "=======", ">>>>>>>")


def serialize_lockfile(lockfile: Lockfile) -> str:
    payload: dict[str, Any] = {}
    for entry in lockfile.entries:
        for range_key in entry.range_keys:
            payload[range_key] = entry.fields
    body = _stringify(payload, indent="", top_level=True)
    return "\n".join([*HEADER, "\n", body])


def parse_lockfile(raw: str) -> Lockfile:
    root: dict[str, Any] = {}
    stack: list[dict[str, Any]] = [root]

    for lineno, line in enumerate(raw.splitlines(), start=1):
        content = line.lstrip(" ")
        if not content.strip() or content.startswith("#"):
            continue
        if line.startswith(_CONFLICT_MARKERS):
            raise LockfileParseError(
                "Lockfile contains merge conflict markers.",
                hint="Resolve the conflict, or run `yarn install` to regenerate the lockfile.",
                context={"line": str(lineno)},
            )
        indent = len(line) - len(content)
        if content.startswith("\t") or indent % 2:
            raise LockfileParseError(
                "Invalid lockfile indentation.",
                context={"line": str(lineno)},
            )
        depth = indent // 2
        if depth >= len(stack):
            raise LockfileParseError(
                "Unexpected indentation in lockfile.",
                context={"line": str(lineno)},
            )
        del stack[depth + 1 :]
        child = _parse_line(content.rstrip(), stack[depth], lineno=lineno)
        if child is not None:
            stack.append(child)

    return _build_lockfile(root)


def read_lockfile(path: str | Path) -> Lockfile:
    lock_path = Path(path)
    try:
        raw = lock_path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise LockfileParseError(
            "Lockfile does not exist.",
            hint="Run `yarn install` first or pass --lockfile.",
            context={"path": str(lock_path)},
        ) from exc
    try:
        return parse_lockfile(raw)
    except LockfileParseError as exc:
        exc.context.setdefault("path", str(lock_path))
        raise


def write_lockfile(lockfile: Lockfile, path: str | Path) -> Path:
    lock_path = Path(path)
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    lock_path.write_text(serialize_lockfile(lockfile), encoding="utf-8")
    return lock_path


def _parse_line(content: str, target: dict[str, Any], *, lineno: int) -> dict[str, Any] | None:
    """Apply one lockfile line to *target*; return the opened block, if any."""
    tokens = _TOKEN_PATTERN.findall(content)
    if not tokens or tokens[0] in {",", ":", '"'}:
        raise LockfileParseError("Expected a key.", context={"line": str(lineno)})

    keys = [_decode_key(tokens[0], lineno=lineno)]
    position = 1
    while position < len(tokens) and tokens[position] == ",":
        if position + 1 >= len(tokens) or tokens[position + 1] in {",", ":", '"'}:
            raise LockfileParseError("Expected a key after `,`.", context={"line": str(lineno)})
        keys.append(_decode_key(tokens[position + 1], lineno=lineno))
        position += 2

    was_colon = position < len(tokens) and tokens[position] == ":"
    if was_colon:
        position += 1
    rest = tokens[position:]

    if not rest and was_colon:
        block: dict[str, Any] = {}
        for key in keys:
            target[key] = block
        return block
    if len(rest) == 1 and rest[0] not in {",", ":", '"'}:
        value = _decode_value(rest[0], lineno=lineno)
        for key in keys:
            target[key] = value
        return None
    raise LockfileParseError("Invalid value in lockfile.", context={"line": str(lineno)})


def _decode_key(token: str, *, lineno: int) -> str:
    if token.startswith('"'):
        return _decode_string(token, lineno=lineno)
    return token


def _decode_value(token: str, *, lineno: int) -> Any:
    if token.startswith('"'):
        return _decode_string(token, lineno=lineno)
    if token in {"true", "false"}:
        return token == "true"
    if token.isascii() and token.isdigit():
        return int(token)
    return token


def _decode_string(token: str, *, lineno: int) -> str:
    try:
        return json.loads(token)
    except json.JSONDecodeError as exc:
        raise LockfileParseError(
            "Invalid quoted string in lockfile.",
            hint=str(exc),
            context={"line": str(lineno)},
        ) from exc


def _build_lockfile(root: dict[str, Any]) -> Lockfile:
    if "__metadata" in root:
        raise LockfileParseError(
            "Unsupported lockfile format.",
            hint="Only Yarn v1 lockfiles are supported.",
        )
    grouped: dict[int, list[str]] = {}
    blocks: dict[int, dict[str, Any]] = {}
    for range_key, value in root.items():
        if not isinstance(value, dict):
            raise LockfileParseError(
                "Invalid top-level lockfile entry.",
                context={"key": range_key},
            )
        grouped.setdefault(id(value), []).append(range_key)
        blocks[id(value)] = value
    return Lockfile(
        entries=tuple(
            LockedEntry(range_keys=tuple(keys), fields=blocks[block_id])
            for block_id, keys in grouped.items()
        )
    )


def _stringify(obj: dict[str, Any], *, indent: str, top_level: bool = False) -> str:
    lines: list[str] = []
    keys = sorted(obj, key=_priority_key)
    added: set[str] = set()
    for position, key in enumerate(keys):
        value = obj[key]
        if value is None or key in added:
            continue
        group = [key]
        if isinstance(value, dict):
            group.extend(other for other in keys[position + 1 :] if obj[other] is value)
        key_line = ", ".join(_maybe_wrap(item) for item in sorted(group))
        if isinstance(value, dict):
            nested = _stringify(value, indent=indent + "  ")
            lines.append(f"{key_line}:\n{nested}" + ("\n" if top_level else ""))
        else:
            lines.append(f"{key_line} {_maybe_wrap(value)}")
        added.update(group)
    return indent + f"\n{indent}".join(lines)


def _priority_key(key: str) -> tuple[int, str]:
    return KEY_PRIORITIES.get(key, 100), key


def _maybe_wrap(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if not isinstance(value, str):
        raise TypeError(f"Cannot serialize lockfile value of type {type(value).__name__}")
    if _should_wrap(value):
        return json.dumps(value, ensure_ascii=False)
    return value


def _should_wrap(value: str) -> bool:
    return (
        value.startswith(("true", "false"))
        or _WRAP_PATTERN.search(value) is not None
        or re.match(r"[0-9]", value) is not None
        or re.match(r"[a-zA-Z]", value) is None
    )
