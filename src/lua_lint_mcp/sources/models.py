"""Function signature records harvested from documentation sources.

Records serialise to the dict shape stored in the documentation cache
file; ``from_dict`` tolerates missing fields so that
older cache files keep loading.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class SourceKind(str, Enum):
    """How a documentation source's content is parsed."""

    ANNOTATED = "annotated-definitions"
    PLAIN = "plain-functions"
    HYBRID = "hybrid"
    CATALOG = "json-native-catalog"

    @classmethod
    def parse(cls, value: str) -> SourceKind:
        """Resolve a kind name, accepting the legacy editor-setting names."""
        key = value.strip().lower()
        legacy = _LEGACY_KINDS.get(key)
        if legacy is not None:
            return legacy
        return cls(key)


_LEGACY_KINDS: dict[str, SourceKind] = {
    "lua_types": SourceKind.ANNOTATED,
    "lua_functions": SourceKind.PLAIN,
    "lua_mixed": SourceKind.HYBRID,
    "natives": SourceKind.CATALOG,
}


# ---------------------------------------------------------------------------
# Parameter types
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class KnownType:
    """A documented type name such as ``string`` or ``table<string, any>``."""

    name: str

    def __str__(self) -> str:
        return self.name


class UnknownType:
    """Undocumented type. Serialises as ``any``."""

    _instance: UnknownType | None = None

    def __new__(cls) -> UnknownType:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __str__(self) -> str:
        return "any"

    def __repr__(self) -> str:
        return "UNKNOWN"


UNKNOWN = UnknownType()

TypeRef = KnownType | UnknownType


def parse_type(value: Any) -> TypeRef:
    """Map a raw type string to a TypeRef; blank or ``any`` is UNKNOWN."""
    if not isinstance(value, str):
        return UNKNOWN
    name = value.strip()
    if not name or name == "any":
        return UNKNOWN
    return KnownType(name)


# ---------------------------------------------------------------------------
# Signature records
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class ParameterDoc:
    name: str
    type: TypeRef = UNKNOWN
    optional: bool = False
    description: str | None = None

    def to_dict(self) -> dict:
        data: dict[str, Any] = {
            "name": self.name,
            "type": str(self.type),
            "optional": self.optional,
        }
        if self.description is not None:
            data["description"] = self.description
        return data

    @classmethod
    def from_dict(cls, data: dict) -> ParameterDoc:
        return cls(
            name=str(data.get("name") or "unknown"),
            type=parse_type(data.get("type")),
            optional=bool(data.get("optional", False)),
            description=data.get("description"),
        )


@dataclass(slots=True)
class ReturnDoc:
    type: str = "any"
    description: str | None = None

    def to_dict(self) -> dict:
        data: dict[str, Any] = {"type": self.type}
        if self.description is not None:
            data["description"] = self.description
        return data

    @classmethod
    def from_dict(cls, data: dict) -> ReturnDoc:
        return cls(
            type=str(data.get("type") or "any"),
            description=data.get("description"),
        )


@dataclass(slots=True)
class FunctionDoc:
    """Signature and documentation of one function, keyed by ``name``."""

    name: str
    source: str
    description: str = ""
    parameters: list[ParameterDoc] = field(default_factory=list)
    returns: list[ReturnDoc] = field(default_factory=list)
    examples: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "source": self.source,
            "description": self.description,
            "parameters": [p.to_dict() for p in self.parameters],
            "returns": [r.to_dict() for r in self.returns],
            "examples": list(self.examples),
        }

    @classmethod
    def from_dict(cls, data: dict) -> FunctionDoc:
        return cls(
            name=str(data["name"]),
            source=str(data.get("source", "")),
            description=str(data.get("description") or ""),
            parameters=[
                ParameterDoc.from_dict(p)
                for p in data.get("parameters") or []
                if isinstance(p, dict)
            ],
            returns=[
                ReturnDoc.from_dict(r)
                for r in data.get("returns") or []
                if isinstance(r, dict)
            ],
            examples=[str(e) for e in data.get("examples") or []],
        )


@dataclass(slots=True)
class CacheEntry:
    """Functions contributed by one source plus its conditional-fetch state."""

    source_name: str
    functions: dict[str, FunctionDoc]
    last_update: datetime
    etag: str | None = None
    last_modified: str | None = None

    def to_dict(self) -> dict:
        data: dict[str, Any] = {
            "functions": {name: doc.to_dict() for name, doc in self.functions.items()},
            "lastUpdate": self.last_update.isoformat(),
            "source": self.source_name,
        }
        if self.etag:
            data["etag"] = self.etag
        if self.last_modified:
            data["lastModified"] = self.last_modified
        return data

    @classmethod
    def from_dict(cls, source_name: str, data: dict) -> CacheEntry:
        functions = {
            name: FunctionDoc.from_dict(doc)
            for name, doc in (data.get("functions") or {}).items()
        }
        return cls(
            source_name=str(data.get("source") or source_name),
            functions=functions,
            last_update=datetime.fromisoformat(data["lastUpdate"]),
            etag=data.get("etag"),
            last_modified=data.get("lastModified"),
        )
