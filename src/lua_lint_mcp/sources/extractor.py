"""Function signature extraction from documentation sources.

Four strategies, selected by ``SourceKind``:

- annotated-definitions: line walk; ``---`` comment blocks attach to the
  following declaration (``@param``, ``@return``, examples, description)
- plain-functions: whole-content regex scan for declarations; files that
  contain ``---@`` annotations are upgraded to the hybrid walk
- hybrid: the annotated line walk with the hybrid declaration shapes
- json-native-catalog: a JSON object keyed by native name

Malformed input never raises: unparseable catalogs produce an empty map and
bad catalog entries are skipped.
"""

import json
import re
from typing import Any

from loguru import logger

from lua_lint_mcp.sources.models import (
    UNKNOWN,
    FunctionDoc,
    ParameterDoc,
    ReturnDoc,
    SourceKind,
    parse_type,
)

_NAME = r"[a-zA-Z_][a-zA-Z0-9_\.]*"

# Ordered declaration shapes; the first match on a line wins.
ANNOTATED_SHAPES: tuple[re.Pattern[str], ...] = (
    re.compile(rf"^function\s+({_NAME})\s*\((.*?)\)"),
    re.compile(rf"^({_NAME})\s*=\s*function\s*\((.*?)\)"),
    re.compile(rf"^local\s+function\s+({_NAME})\s*\((.*?)\)"),
    re.compile(r"^exports\.(.*?)\s*=\s*function\s*\((.*?)\)"),
    re.compile(rf"^lib\.({_NAME})\s*=\s*function\s*\((.*?)\)"),
)

HYBRID_SHAPES: tuple[re.Pattern[str], ...] = (
    re.compile(rf"^function\s+({_NAME})\s*\((.*?)\)"),
    re.compile(rf"^({_NAME})\s*=\s*function\s*\((.*?)\)"),
    re.compile(rf"^local\s+function\s+({_NAME})\s*\((.*?)\)"),
    re.compile(r"^exports\.(.*?)\s*=\s*function\s*\((.*?)\)"),
    re.compile(r"^exports\s*\(\s*['\"]([^'\"]+)['\"]\s*,\s*function\s*\((.*?)\)"),
)

# Applied to the whole content in order; later matches overwrite earlier ones.
PLAIN_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(rf"(?:local\s+)?function\s+({_NAME})\s*\((.*?)\)"),
    re.compile(rf"({_NAME})\s*=\s*function\s*\((.*?)\)"),
    re.compile(r"exports\s*\(\s*['\"]([^'\"]+)['\"]\s*,\s*function\s*\((.*?)\)"),
    re.compile(rf"exports\.({_NAME})\s*=\s*function\s*\((.*?)\)"),
)

DOC_COMMENT_PREFIX = "---"
ANNOTATION_MARKER = "---@"

_PARAM_RE = re.compile(r"@param\s+(\w+)\??\s+(\S+)\s*(.*)")
_RETURN_RE = re.compile(r"@return\s+(\S+)\s*(.*)")
_DEFAULT_DESCRIPTION = "No description available"


def _minimal_description(source_name: str) -> str:
    return f"Function from {source_name}"


# ---------------------------------------------------------------------------
# Comment block helpers
# ---------------------------------------------------------------------------


def _is_example_marker(line: str) -> bool:
    return "example" in line.lower()


def _split_examples(comment_lines: list[str]) -> tuple[list[str], list[str]]:
    """Separate example blocks from the rest of a comment block.

    An example block starts at a line containing "example" and runs until
    the next ``@`` line or the end of the block. Returns
    ``(examples, remaining_lines)``.
    """
    examples: list[str] = []
    remaining: list[str] = []
    in_example = False
    current: list[str] = []

    for line in comment_lines:
        if _is_example_marker(line):
            if current:
                examples.append("\n".join(current).strip())
            in_example = True
            current = []
        elif in_example and line.startswith("@"):
            if current:
                examples.append("\n".join(current).strip())
            in_example = False
            current = []
            remaining.append(line)
        elif in_example:
            current.append(line)
        else:
            remaining.append(line)

    if current:
        examples.append("\n".join(current).strip())
    return [e for e in examples if e], remaining


def extract_description(comment_lines: list[str]) -> str:
    _, remaining = _split_examples(comment_lines)
    text = " ".join(line for line in remaining if line and not line.startswith("@"))
    return text.strip() or _DEFAULT_DESCRIPTION


def extract_examples(comment_lines: list[str]) -> list[str]:
    examples, _ = _split_examples(comment_lines)
    return examples


def extract_returns(comment_lines: list[str]) -> list[ReturnDoc]:
    returns: list[ReturnDoc] = []
    for line in comment_lines:
        match = _RETURN_RE.search(line)
        if match:
            returns.append(
                ReturnDoc(type=match.group(1), description=match.group(2).strip())
            )
    return returns


def extract_param_annotations(comment_lines: list[str]) -> dict[str, ParameterDoc]:
    annotations: dict[str, ParameterDoc] = {}
    for line in comment_lines:
        match = _PARAM_RE.search(line)
        if match:
            name = match.group(1)
            annotations.setdefault(
                name,
                ParameterDoc(
                    name=name,
                    type=parse_type(match.group(2)),
                    description=match.group(3).strip(),
                ),
            )
    return annotations


def parse_parameters(param_string: str, comment_lines: list[str]) -> list[ParameterDoc]:
    """Parse a declaration's parameter list, enriched by ``@param`` lines.

    ``?`` anywhere in a name marks it optional. Annotations whose name does
    not match a declared parameter are ignored.
    """
    if not param_string.strip():
        return []

    annotations = extract_param_annotations(comment_lines)
    parameters: list[ParameterDoc] = []
    for raw in param_string.split(","):
        trimmed = raw.strip()
        optional = "?" in trimmed
        name = trimmed.replace("?", "", 1).strip()
        annotation = annotations.get(name)
        parameters.append(
            ParameterDoc(
                name=name,
                type=annotation.type if annotation else UNKNOWN,
                optional=optional,
                description=annotation.description if annotation else None,
            )
        )
    return parameters


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------


def _build_doc(
    name: str, params: str, source_name: str, comment_lines: list[str] | None
) -> FunctionDoc:
    if comment_lines is None:
        return FunctionDoc(
            name=name,
            source=source_name,
            description=_minimal_description(source_name),
            parameters=parse_parameters(params, []),
        )
    return FunctionDoc(
        name=name,
        source=source_name,
        description=extract_description(comment_lines),
        parameters=parse_parameters(params, comment_lines),
        returns=extract_returns(comment_lines),
        examples=extract_examples(comment_lines),
    )


def _walk_lines(
    content: str, source_name: str, shapes: tuple[re.Pattern[str], ...]
) -> dict[str, FunctionDoc]:
    functions: dict[str, FunctionDoc] = {}
    pending: list[str] | None = None

    for raw in content.split("\n"):
        line = raw.strip()

        if line.startswith(DOC_COMMENT_PREFIX):
            if pending is None:
                pending = []
            pending.append(line[len(DOC_COMMENT_PREFIX) :].strip())
            continue

        match = next((m for m in (s.match(line) for s in shapes) if m), None)
        if match:
            name = match.group(1)
            functions[name] = _build_doc(name, match.group(2) or "", source_name, pending)
            logger.debug(
                f"Found {'documented' if pending is not None else 'undocumented'} "
                f"function: {name}"
            )
            pending = None
            continue

        # A code line between a comment block and a declaration detaches it
        if pending is not None and line:
            pending = None

    return functions


def extract_annotated(content: str, source_name: str) -> dict[str, FunctionDoc]:
    return _walk_lines(content, source_name, ANNOTATED_SHAPES)


def extract_hybrid(content: str, source_name: str) -> dict[str, FunctionDoc]:
    return _walk_lines(content, source_name, HYBRID_SHAPES)


def extract_plain(content: str, source_name: str) -> dict[str, FunctionDoc]:
    if ANNOTATION_MARKER in content:
        logger.debug(f"{source_name} has annotations, using hybrid extraction")
        return extract_hybrid(content, source_name)

    functions: dict[str, FunctionDoc] = {}
    for pattern in PLAIN_PATTERNS:
        for match in pattern.finditer(content):
            name = match.group(1)
            functions[name] = _build_doc(name, match.group(2) or "", source_name, None)
    return functions


def _catalog_parameters(raw: Any) -> list[ParameterDoc]:
    if not isinstance(raw, list):
        return []
    return [
        ParameterDoc(
            name=str(param.get("name") or "unknown"),
            type=parse_type(param.get("type")),
            description=str(param.get("description") or ""),
            optional=bool(param.get("optional") or False),
        )
        for param in raw
        if isinstance(param, dict)
    ]


def _catalog_returns(raw: Any) -> list[ReturnDoc]:
    if isinstance(raw, dict):
        raw = [raw]
    if not isinstance(raw, list):
        return []
    return [
        ReturnDoc(
            type=str(ret.get("type") or "void"),
            description=str(ret.get("description") or ""),
        )
        for ret in raw
        if isinstance(ret, dict)
    ]


def extract_catalog(content: str, source_name: str) -> dict[str, FunctionDoc]:
    functions: dict[str, FunctionDoc] = {}
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse natives JSON for {source_name}: {e}")
        return functions

    if not isinstance(data, dict):
        logger.error(f"Invalid natives JSON for {source_name}: root should be an object")
        return functions

    for key, native in data.items():
        if not isinstance(native, dict):
            logger.warning(f"Skipping invalid native: {key}")
            continue
        try:
            description = native.get("description") or f"Native function from {source_name}"
            if native.get("side"):
                description = f"{description} (Side: {native['side']})"
            examples = native.get("examples")
            functions[key] = FunctionDoc(
                name=str(native.get("name") or key),
                source=source_name,
                description=str(description),
                parameters=_catalog_parameters(native.get("parameters")),
                returns=_catalog_returns(native.get("returns")),
                examples=[str(e) for e in examples] if isinstance(examples, list) else [],
            )
        except (TypeError, ValueError, AttributeError) as e:
            logger.warning(f"Error parsing native {key}: {e}")

    return functions


_STRATEGIES = {
    SourceKind.ANNOTATED: extract_annotated,
    SourceKind.PLAIN: extract_plain,
    SourceKind.HYBRID: extract_hybrid,
    SourceKind.CATALOG: extract_catalog,
}


def extract(content: str, source_name: str, kind: SourceKind | str) -> dict[str, FunctionDoc]:
    """Extract a name -> FunctionDoc map from one source's content."""
    if isinstance(kind, str) and not isinstance(kind, SourceKind):
        kind = SourceKind.parse(kind)
    functions = _STRATEGIES[kind](content, source_name)
    logger.debug(f"Extracted {len(functions)} functions from {source_name} ({kind.value})")
    return functions
