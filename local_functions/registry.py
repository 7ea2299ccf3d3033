"""
Route registry: turns the manifest's packages/actions into Route records.

Every action becomes a candidate route at /<package>/<action>, backed by the
source directory packages/<package>/<action>/. A candidate is dropped (with a
log line, never fatally) when:

  - its runtime is not a nodejs:* runtime
  - the source directory has no package.json
  - package.json is not a valid JSON object

Routes keep manifest order (package, then action). Lookups take the first
route whose path is a prefix of the request path, so if two actions produce
the same route path the earlier one always wins.
"""
import json
import logging
from pathlib import Path
from typing import Callable, Optional

from pydantic import ValidationError

from local_functions.config import DESCRIPTOR_FILE, PACKAGES_DIR, SUPPORTED_RUNTIME_PREFIX
from local_functions.errors import (
    InvalidDescriptor,
    MissingDescriptor,
    NoRouteMatch,
    RouteConstructionError,
    UnsupportedRuntime,
)
from local_functions.models import ActionSpec, PackageDescriptor, ProjectManifest, Route

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------
# Internal helpers
# ------------------------------------------------------------------

def _read_descriptor(source_dir: Path, route_path: str) -> PackageDescriptor:
    """
    Load <source_dir>/package.json.

    Raises:
        MissingDescriptor — the file does not exist
        InvalidDescriptor — not JSON, or not an object of the expected shape
    """
    descriptor_path = source_dir / DESCRIPTOR_FILE
    if not descriptor_path.is_file():
        raise MissingDescriptor(f"{DESCRIPTOR_FILE} not found for action {route_path}")

    try:
        data = json.loads(descriptor_path.read_text(encoding="utf-8"))
        return PackageDescriptor.model_validate(data)
    except (OSError, ValueError, ValidationError) as e:
        raise InvalidDescriptor(
            f"error parsing {DESCRIPTOR_FILE} for action {route_path}: {e}"
        ) from e


def make_route(package_name: str, action: ActionSpec, project_root: Path) -> Route:
    """
    Build the Route for one action.

    Raises a RouteConstructionError subclass if the action cannot be served.
    """
    route_path = f"/{package_name}/{action.name}"
    source_dir = project_root / PACKAGES_DIR / package_name / action.name

    if not action.runtime or not action.runtime.startswith(SUPPORTED_RUNTIME_PREFIX):
        raise UnsupportedRuntime(f"unsupported runtime {action.runtime} for action {route_path}")

    descriptor = _read_descriptor(source_dir, route_path)
    route = Route(
        route_path=route_path,
        source_dir=source_dir,
        entrypoint=descriptor.entrypoint,
        action=action,
        has_build=descriptor.has_build,
    )
    return route


# ------------------------------------------------------------------
# Public API
# ------------------------------------------------------------------

def build_routes(
    manifest: ProjectManifest,
    project_root: Path,
    on_build: Optional[Callable[[Route], None]] = None,
) -> list[Route]:
    """
    Walk the manifest and return the ordered list of servable routes.

    'on_build' is called for each route whose package.json declares a
    build script, right after the route is registered and before the next
    action is examined. The CLI passes BuildManager.register here.
    """
    routes: list[Route] = []
    seen: set[str] = set()

    for package in manifest.packages:
        for action in package.actions:
            try:
                route = make_route(package.name, action, project_root)
            except RouteConstructionError as e:
                logger.warning("%s", e)
                continue

            if route.route_path in seen:
                logger.warning(
                    "duplicate route %s; requests will go to the first one registered",
                    route.route_path,
                )
            seen.add(route.route_path)
            routes.append(route)
            logger.info("registered %s -> %s", route.route_path, route.source_dir)

            if route.has_build and on_build is not None:
                on_build(route)

    return routes


def find_route(routes: list[Route], path: str) -> Route:
    """
    Return the first route (in registry order) whose route_path prefixes 'path'.

    Raises:
        NoRouteMatch — no route matches
    """
    for route in routes:
        if path.startswith(route.route_path):
            return route
    raise NoRouteMatch(f"no route found for {path}")
