"""
Data models for the local functions emulator.

These Pydantic models describe the documents the emulator reads (project
manifest, per-action package.json) and the records it builds from them
(Route, InvocationResult). Unknown keys are tolerated everywhere: the
manifest format belongs to the platform, and we only read the parts the
emulator needs.
"""
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from local_functions.config import (
    DEFAULT_BUILD_TIMEOUT_SEC,
    DEFAULT_ENTRYPOINT,
    DEFAULT_MAIN_EXPORT,
    MAX_BUILD_TIMEOUT_SEC,
)


# ------------------------------------------------------------------
# Project manifest
# ------------------------------------------------------------------

class ActionLimits(BaseModel):
    model_config = ConfigDict(extra="allow")

    timeout: Optional[int] = None   # milliseconds, as the platform declares it


class ActionSpec(BaseModel):
    """
    One action entry under a package in the manifest.

    'main' is the name of the exported function to call, not a file name;
    the file comes from the action's package.json.
    """
    model_config = ConfigDict(extra="allow")

    name: str
    runtime: Optional[str] = None   # missing or non-string runtimes are skipped by the registry
    main: Optional[str] = None
    limits: Optional[ActionLimits] = None

    @field_validator("runtime", mode="before")
    @classmethod
    def _runtime_or_none(cls, value):
        return value if isinstance(value, str) else None

    @property
    def main_export(self) -> str:
        return self.main or DEFAULT_MAIN_EXPORT

    @property
    def build_timeout_sec(self) -> float:
        """
        Wall-clock limit for this action's build.

        The declared timeout (ms) is reused for builds, capped at 15 minutes.
        Without one, builds get 2 minutes.
        """
        declared = self.limits.timeout if self.limits else None
        if declared is None:
            timeout = DEFAULT_BUILD_TIMEOUT_SEC
        else:
            timeout = declared / 1000
        return min(timeout, MAX_BUILD_TIMEOUT_SEC)


class PackageSpec(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str
    actions: list[ActionSpec] = Field(default_factory=list)

    # A bare `actions:` key in YAML parses as null.
    @field_validator("actions", mode="before")
    @classmethod
    def _null_actions(cls, value):
        return [] if value is None else value


class ProjectManifest(BaseModel):
    model_config = ConfigDict(extra="allow")

    packages: list[PackageSpec] = Field(default_factory=list)


# ------------------------------------------------------------------
# Per-action package descriptor (package.json)
# ------------------------------------------------------------------

class PackageDescriptor(BaseModel):
    model_config = ConfigDict(extra="allow")

    main: Optional[str] = None
    scripts: dict[str, Any] = Field(default_factory=dict)

    @property
    def entrypoint(self) -> str:
        return self.main or DEFAULT_ENTRYPOINT

    @property
    def has_build(self) -> bool:
        build = self.scripts.get("build")
        return isinstance(build, str) and bool(build.strip())


# ------------------------------------------------------------------
# Routes
# ------------------------------------------------------------------

class Route(BaseModel):
    """
    Maps an HTTP path prefix to one action's source and invocation metadata.

    Built once by the registry and never mutated afterwards, so the route
    list can be shared by every request handler without locking.
    """
    model_config = ConfigDict(frozen=True)

    route_path: str     # "/<package>/<action>", matched as a path prefix
    source_dir: Path    # working directory for builds and invocations
    entrypoint: str     # module the bootstrap requires, e.g. "index" or "dist/index.js"
    action: ActionSpec
    has_build: bool = False


class BuildState(str, Enum):
    IDLE = "idle"
    IN_PROGRESS = "in_progress"


# ------------------------------------------------------------------
# Invocation results
# ------------------------------------------------------------------

class InvocationResult(BaseModel):
    """
    The object a function resolves to, as parsed from its RESULT: line.

        {"statusCode": 201, "body": {"id": 7}}

    statusCode is optional (null counts as absent). If 'body' is missing
    entirely the response is sent with an empty payload; a present body,
    including null, is JSON-encoded.
    """
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    # Final statuses only.
    status_code: Optional[int] = Field(default=None, alias="statusCode", ge=200, le=599)
    body: Any = None

    @property
    def http_status(self) -> int:
        return self.status_code if self.status_code is not None else 200

    @property
    def has_body(self) -> bool:
        return "body" in self.model_fields_set
