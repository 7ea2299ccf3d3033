"""
Command-line entry point.

Usage:
    local-functions run-local project.yml
    local-functions run-local project.yml --port 9001 --log-level debug

Action sources are resolved relative to the manifest's directory:
<project>/packages/<package>/<action>/package.json.
"""
import argparse
import logging
import sys
from pathlib import Path

import uvicorn

from local_functions.build.coordinator import BuildManager
from local_functions.config import HOST, PORT
from local_functions.errors import ManifestError
from local_functions.main import create_app
from local_functions.manifest import load_manifest
from local_functions.registry import build_routes

USAGE = "Usage: local-functions run-local <project.yml>"

logger = logging.getLogger("local_functions")


class _Parser(argparse.ArgumentParser):
    """ArgumentParser that prints the one-line usage and exits 1 on misuse."""

    def error(self, message):
        print(USAGE)
        sys.exit(1)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = _Parser(prog="local-functions", usage=USAGE)
    sub = parser.add_subparsers(dest="command")

    run = sub.add_parser("run-local", usage=USAGE)
    run.add_argument("manifest", type=Path, help="project manifest (YAML or JSON)")
    run.add_argument("--host", default=HOST)
    run.add_argument("--port", type=int, default=PORT)
    run.add_argument("--log-level", default="info",
                     choices=["debug", "info", "warning", "error"])

    args = parser.parse_args(argv)
    if args.command != "run-local":
        parser.error("missing subcommand")
    return args


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        manifest = load_manifest(args.manifest)
    except ManifestError as e:
        print(e)
        return 1

    project_root = args.manifest.resolve().parent
    builds = BuildManager()
    routes = build_routes(manifest, project_root, on_build=builds.register)

    app = create_app(routes, builds)
    logger.info("Listening on http://localhost:%d/", args.port)
    uvicorn.run(app, host=args.host, port=args.port, log_level=args.log_level, access_log=True)
    return 0


if __name__ == "__main__":
    sys.exit(main())
