"""
Helpers for building throwaway projects and fake function processes.

    <tmp>/project.yml
    <tmp>/packages/<package>/<action>/package.json
"""
import json
import sys
from pathlib import Path

from local_functions.models import ActionSpec, Route


def write_action(root: Path, package: str, action: str, descriptor=None, files=None) -> Path:
    """Create packages/<package>/<action>/ with an optional package.json and extra files."""
    source = root / "packages" / package / action
    source.mkdir(parents=True, exist_ok=True)
    if descriptor is not None:
        text = descriptor if isinstance(descriptor, str) else json.dumps(descriptor)
        (source / "package.json").write_text(text)
    for name, content in (files or {}).items():
        (source / name).write_text(content)
    return source


def make_route(source_dir: Path, route_path: str = "/pkg/fn", has_build: bool = False, **action) -> Route:
    action.setdefault("name", route_path.rsplit("/", 1)[-1])
    action.setdefault("runtime", "nodejs:18")
    return Route(
        route_path=route_path,
        source_dir=source_dir,
        entrypoint="index",
        action=ActionSpec(**action),
        has_build=has_build,
    )


def python_command(script: str):
    """
    A command factory that runs 'script' with this interpreter instead of node.

    The script receives the JSON params as sys.argv[1], exactly like the
    node bootstrap receives process.argv[1].
    """
    def command(route, payload):
        return [sys.executable, "-c", script, payload]
    return command


