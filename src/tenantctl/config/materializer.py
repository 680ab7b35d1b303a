"""
Persisted per-tenant variable sets.

Each tenant gets one ``<slug>.tfvars`` file in the vars directory. The file
is the only input the infrastructure provider receives, so it is rendered
in full on every deploy and written atomically.
"""

from __future__ import annotations

import os
import re
import tempfile
from pathlib import Path
from typing import Any

import structlog

from tenantctl.config.tenant import FUNCTION_NAMES, TenantConfig

logger = structlog.get_logger()

VARS_SUFFIX = ".tfvars"

_ASSIGNMENT = re.compile(r'^\s*"?([A-Za-z0-9_.:/-]+)"?\s*=\s*(.*?)\s*$')

_ESCAPES = {"\\\\": "\\", '\\"': '"', "\\n": "\n", "$${": "${", "%%{": "%{"}
_ESCAPE = re.compile(r'\\\\|\\"|\\n|\$\$\{|%%\{')


def _quote(value: str) -> str:
    """Render a string as an HCL literal with template sequences escaped."""
    escaped = (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("${", "$${")
        .replace("%{", "%%{")
    )
    return f'"{escaped}"'


def _unquote(literal: str) -> str:
    if len(literal) >= 2 and literal[0] == '"' and literal[-1] == '"':
        return _ESCAPE.sub(lambda m: _ESCAPES[m.group(0)], literal[1:-1])
    return literal


def _render_map(name: str, items: dict[str, str], quote_keys: bool) -> list[str]:
    lines = [f"{name} = {{"]
    for key in sorted(items):
        rendered_key = _quote(key) if quote_keys else key
        lines.append(f"  {rendered_key} = {_quote(items[key])}")
    lines.append("}")
    return lines


def render_variables(config: TenantConfig) -> str:
    """Render a TenantConfig as a Terraform variable file (deterministic)."""
    scalars: list[tuple[str, str]] = [
        ("tenant_slug", config.slug),
        ("environment", config.environment),
        ("aws_region", config.region),
        ("frontend_bucket_name", config.frontend_bucket),
        ("assets_bucket_name", config.assets_bucket),
        ("db_name", config.db_name),
        ("db_username", config.db_username),
        ("db_password", config.db_password),
        ("db_engine_version", config.db_engine_version),
        ("jwt_secret", config.jwt_secret),
        ("session_secret", config.session_secret),
        ("backend_image_tag", config.backend_image_tag),
        ("function_image_tag", config.function_image_tag),
        ("domain_name", config.domain_name),
        ("certificate_arn", config.certificate_arn),
        ("third_party_api_key", config.third_party_api_key),
    ]

    lines = [f"# Managed by tenantctl for tenant {config.slug}. Regenerated on every deploy."]
    width = max(len(name) for name, _ in scalars)
    for name, value in scalars:
        lines.append(f"{name.ljust(width)} = {_quote(value)}")
    lines.append("")
    lines.extend(_render_map("function_image_tags", config.effective_function_tags(), False))
    lines.append("")
    lines.extend(_render_map("tags", config.resource_tags(), True))
    return "\n".join(lines) + "\n"


def render_degraded_variables(slug: str) -> str:
    """Variable file scoped only by slug, for destroying a tenant with no persisted set."""
    lines = [
        f"# Degraded variable set for tenant {slug}: original settings were not found.",
        f"tenant_slug = {_quote(slug)}",
        "",
    ]
    lines.extend(_render_map("function_image_tags", {n: "latest" for n in FUNCTION_NAMES}, False))
    return "\n".join(lines) + "\n"


def parse_variables(text: str) -> dict[str, Any]:
    """Parse a variable file produced by render_variables back into a dict."""
    result: dict[str, Any] = {}
    current_map: dict[str, str] | None = None

    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        if current_map is not None:
            if stripped == "}":
                current_map = None
                continue
            match = _ASSIGNMENT.match(stripped)
            if match:
                current_map[match.group(1)] = _unquote(match.group(2))
            continue

        match = _ASSIGNMENT.match(stripped)
        if not match:
            continue
        key, value = match.group(1), match.group(2)
        if value == "{":
            current_map = {}
            result[key] = current_map
        else:
            result[key] = _unquote(value)

    return result


def write_atomic(path: Path, content: str) -> None:
    """Write content so readers only ever see the old file or the complete new one."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(tmp_name, 0o600)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


class VariableSetStore:
    """Reads and writes tenant variable sets under one directory."""

    def __init__(self, vars_dir: Path) -> None:
        self.vars_dir = vars_dir

    def path_for(self, slug: str) -> Path:
        return self.vars_dir / f"{slug}{VARS_SUFFIX}"

    def materialize(self, config: TenantConfig) -> Path:
        """Render and persist the tenant's variable set, overwriting any previous one."""
        path = self.path_for(config.slug)
        write_atomic(path, render_variables(config))
        logger.info("variable_set_materialized", tenant=config.slug, path=str(path))
        return path

    def materialize_degraded(self, slug: str) -> Path:
        path = self.vars_dir / f".{slug}.degraded{VARS_SUFFIX}"
        write_atomic(path, render_degraded_variables(slug))
        return path

    def exists(self, slug: str) -> bool:
        return self.path_for(slug).is_file()

    def load(self, slug: str) -> dict[str, Any] | None:
        path = self.path_for(slug)
        if not path.is_file():
            return None
        return parse_variables(path.read_text(encoding="utf-8"))

    def list_tenants(self) -> list[str]:
        if not self.vars_dir.is_dir():
            return []
        return sorted(
            p.name[: -len(VARS_SUFFIX)]
            for p in self.vars_dir.glob(f"*{VARS_SUFFIX}")
            if not p.name.startswith(".")
        )
