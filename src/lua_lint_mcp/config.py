"""Configuration settings for Lua Lint MCP Server."""

from pathlib import Path

from pydantic import BaseModel, field_validator, model_validator
from pydantic_settings import BaseSettings

from lua_lint_mcp.sources.models import SourceKind


def _default_data_dir() -> Path:
    """Get default data directory (~/.lua-lint-mcp/)."""
    return Path.home() / ".lua-lint-mcp"


# Names that are legitimately assigned at file scope in FiveM resources
_DEFAULT_GLOBAL_EXCEPTIONS = [
    "Config",
    "exports",
    "RegisterNetEvent",
    "RegisterServerEvent",
    "AddEventHandler",
    "TriggerEvent",
    "TriggerServerEvent",
    "TriggerClientEvent",
]


class DocumentationSource(BaseModel):
    """A named origin contributing function signatures to the index."""

    name: str
    url: str
    kind: SourceKind = SourceKind.ANNOTATED
    enabled: bool = True

    @model_validator(mode="before")
    @classmethod
    def _accept_type_alias(cls, data):
        # Older configs call the field "type"
        if isinstance(data, dict) and "kind" not in data and "type" in data:
            data = {k: v for k, v in data.items() if k != "type"} | {"kind": data["type"]}
        return data

    @field_validator("kind", mode="before")
    @classmethod
    def _accept_legacy_kind(cls, value):
        if isinstance(value, str):
            return SourceKind.parse(value)
        return value


class Settings(BaseSettings):
    """Lua Lint MCP Server configuration.

    Environment variables (prefix LUA_LINT_):
    - ENABLE_*_CHECK: Toggle individual diagnostic passes (default: true)
    - DOCUMENTATION_SOURCES: JSON list of {name, url, kind, enabled}
        Example: '[{"name": "ox_lib", "url": "https://.../types.lua",
                   "kind": "annotated-definitions", "enabled": true}]'
        Kinds: annotated-definitions, plain-functions, hybrid,
        json-native-catalog (legacy: lua_types, lua_functions, lua_mixed, natives)
    - DOCS_SOURCE_PRIORITY: JSON list of source names searched first on lookup
    - AUTO_LOAD_LOCAL_TYPES: Merge workspace types.lua files (default: true)
    - WORKSPACE_ROOT: Root for workspace scans and auto-discovery (default: cwd)
    - DATA_DIR: Cache directory (default: ~/.lua-lint-mcp)
    - SCAN_DEBOUNCE_MS: Delay coalescing rapid edits (default: 350)
    """

    # Diagnostic passes
    enable_while_loop_check: bool = True
    enable_repeat_loop_check: bool = True
    enable_global_variable_check: bool = True
    enable_performance_check: bool = True
    enable_net_event_check: bool = True
    enable_citizen_patterns: bool = True
    enable_local_function_order_check: bool = True

    # Rule tuning
    global_exceptions: list[str] = _DEFAULT_GLOBAL_EXCEPTIONS
    yield_functions: list[str] = ["Wait", "Citizen.Wait"]
    lua_language_ids: list[str] = ["lua"]
    workspace_glob: str = "**/*.lua"

    # Scanning
    scan_debounce_ms: int = 350
    workspace_root: str = ""  # Default: current working directory

    # Documentation
    enable_documentation_features: bool = True
    documentation_sources: list[DocumentationSource] = []
    docs_source_priority: list[str] = []
    auto_load_local_types: bool = True
    local_types_glob: str = "**/types.lua"

    # Documentation download
    docs_max_concurrent_downloads: int = 2
    docs_fetch_timeout: float = 30.0
    docs_fetch_retries: int = 3
    docs_retry_base_delay: float = 0.5  # seconds, doubled per attempt
    docs_max_size: int = 10 * 1024 * 1024
    user_agent: str = "lua-lint-mcp"

    # Storage
    data_dir: str = ""  # Default: ~/.lua-lint-mcp

    # Tool execution timeout (seconds, 0 = no timeout)
    tool_timeout: int = 120

    # Logging
    log_level: str = "INFO"

    model_config = {"env_prefix": "LUA_LINT_", "case_sensitive": False}

    # --- Path helpers ---

    def get_data_dir(self) -> Path:
        """Get data directory.

        Uses DATA_DIR if set, otherwise ~/.lua-lint-mcp/.
        """
        if self.data_dir:
            return Path(self.data_dir).expanduser()
        return _default_data_dir()

    def get_docs_cache_dir(self) -> Path:
        """Directory holding the persisted documentation index."""
        return self.get_data_dir() / "documentation"

    def get_docs_cache_path(self) -> Path:
        """Resolved documentation cache file path."""
        return self.get_docs_cache_dir() / "documentation.json"

    def get_workspace_root(self) -> Path:
        """Workspace root used for scans and types.lua discovery."""
        if self.workspace_root:
            return Path(self.workspace_root).expanduser()
        return Path.cwd()

    def enabled_sources(self) -> list[DocumentationSource]:
        """Documentation sources with ``enabled`` set."""
        return [source for source in self.documentation_sources if source.enabled]


settings = Settings()
