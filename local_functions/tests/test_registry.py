"""
Tests for registry.py and the Route/descriptor models it builds on.

Run with:
    pytest local_functions/tests/test_registry.py -v
"""
import logging

import pytest
from pydantic import ValidationError

from local_functions.errors import NoRouteMatch
from local_functions.models import ActionSpec, PackageSpec, ProjectManifest
from local_functions.registry import build_routes, find_route
from local_functions.tests.helpers import make_route, write_action


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

def _manifest(*packages) -> ProjectManifest:
    """_manifest(("pkg", [("fn", "nodejs:18"), ...]), ...)"""
    return ProjectManifest(packages=[
        PackageSpec(name=name, actions=[ActionSpec(name=a, runtime=rt) for a, rt in actions])
        for name, actions in packages
    ])


# ==================================================================
# build_routes
# ==================================================================

class TestBuildRoutes:

    def test_route_path_and_source_dir(self, project):
        write_action(project, "sample", "hello", {"name": "hello"})
        routes = build_routes(_manifest(("sample", [("hello", "nodejs:18")])), project)

        assert len(routes) == 1
        assert routes[0].route_path == "/sample/hello"
        assert routes[0].source_dir == project / "packages" / "sample" / "hello"

    def test_entrypoint_defaults_to_index(self, project):
        write_action(project, "p", "a", {})
        routes = build_routes(_manifest(("p", [("a", "nodejs:18")])), project)
        assert routes[0].entrypoint == "index"

    def test_entrypoint_from_descriptor_main(self, project):
        write_action(project, "p", "a", {"main": "dist/index.js"})
        routes = build_routes(_manifest(("p", [("a", "nodejs:18")])), project)
        assert routes[0].entrypoint == "dist/index.js"

    def test_manifest_order_is_preserved(self, project):
        for pkg, action in [("b", "z"), ("b", "a"), ("a", "m")]:
            write_action(project, pkg, action, {})
        manifest = _manifest(
            ("b", [("z", "nodejs:18"), ("a", "nodejs:18")]),
            ("a", [("m", "nodejs:18")]),
        )
        routes = build_routes(manifest, project)
        assert [r.route_path for r in routes] == ["/b/z", "/b/a", "/a/m"]

    # --- Skipped actions ---

    def test_unsupported_runtime_skips_only_that_action(self, project, caplog):
        write_action(project, "p", "py", {})
        write_action(project, "p", "js", {})
        manifest = _manifest(("p", [("py", "python:3.9"), ("js", "nodejs:18")]))

        with caplog.at_level(logging.WARNING):
            routes = build_routes(manifest, project)

        assert [r.route_path for r in routes] == ["/p/js"]
        assert "unsupported runtime python:3.9" in caplog.text

    def test_missing_runtime_skips_only_that_action(self, project, caplog):
        write_action(project, "p", "draft", {})
        write_action(project, "p", "js", {})
        manifest = _manifest(("p", [("draft", None), ("js", "nodejs:18")]))

        with caplog.at_level(logging.WARNING):
            routes = build_routes(manifest, project)

        assert [r.route_path for r in routes] == ["/p/js"]
        assert "unsupported runtime None for action /p/draft" in caplog.text

    def test_missing_descriptor_is_skipped(self, project, caplog):
        write_action(project, "p", "bare")          # directory, no package.json
        write_action(project, "p", "ok", {})
        manifest = _manifest(("p", [("bare", "nodejs:18"), ("ghost", "nodejs:18"), ("ok", "nodejs:18")]))

        with caplog.at_level(logging.WARNING):
            routes = build_routes(manifest, project)

        assert [r.route_path for r in routes] == ["/p/ok"]
        assert "package.json not found for action /p/bare" in caplog.text
        assert "package.json not found for action /p/ghost" in caplog.text

    def test_invalid_descriptor_is_skipped(self, project, caplog):
        write_action(project, "p", "broken", "{not json")
        write_action(project, "p", "list", "[1, 2]")
        manifest = _manifest(("p", [("broken", "nodejs:18"), ("list", "nodejs:18")]))

        with caplog.at_level(logging.WARNING):
            routes = build_routes(manifest, project)

        assert routes == []
        assert "error parsing package.json for action /p/broken" in caplog.text
        assert "error parsing package.json for action /p/list" in caplog.text

    # --- Build registration ---

    def test_build_script_registers_route(self, project):
        write_action(project, "p", "built", {"scripts": {"build": "tsc"}})
        write_action(project, "p", "plain", {"scripts": {"test": "jest"}})
        registered = []

        routes = build_routes(
            _manifest(("p", [("built", "nodejs:18"), ("plain", "nodejs:18")])),
            project,
            on_build=registered.append,
        )

        assert [r.route_path for r in registered] == ["/p/built"]
        assert routes[0].has_build is True
        assert routes[1].has_build is False

    def test_build_is_registered_before_next_action(self, project, caplog):
        write_action(project, "p", "first", {"scripts": {"build": "tsc"}})
        write_action(project, "p", "second", {})
        registered_so_far = []

        def on_build(route):
            registered_so_far.extend(
                r.getMessage() for r in caplog.records if r.getMessage().startswith("registered")
            )

        with caplog.at_level(logging.INFO):
            build_routes(_manifest(("p", [("first", "nodejs:18"), ("second", "nodejs:18")])),
                         project, on_build=on_build)

        assert len(registered_so_far) == 1
        assert registered_so_far[0].startswith("registered /p/first")

    def test_blank_build_script_is_not_a_build(self, project):
        write_action(project, "p", "a", {"scripts": {"build": "  "}})
        registered = []
        build_routes(_manifest(("p", [("a", "nodejs:18")])), project, on_build=registered.append)
        assert registered == []

    # --- Duplicates ---

    def test_duplicate_route_paths_are_kept_with_warning(self, project, caplog):
        write_action(project, "p", "a", {})
        manifest = _manifest(("p", [("a", "nodejs:18"), ("a", "nodejs:20")]))

        with caplog.at_level(logging.WARNING):
            routes = build_routes(manifest, project)

        assert len(routes) == 2
        assert "duplicate route /p/a" in caplog.text


# ==================================================================
# find_route
# ==================================================================

class TestFindRoute:

    @pytest.fixture
    def routes(self, tmp_path):
        return [
            make_route(tmp_path, "/shop/cart"),
            make_route(tmp_path, "/shop/checkout"),
            make_route(tmp_path, "/auth/login"),
        ]

    def test_exact_path_matches(self, routes):
        assert find_route(routes, "/shop/checkout").route_path == "/shop/checkout"

    def test_sub_path_matches_by_prefix(self, routes):
        assert find_route(routes, "/auth/login/extra/segments").route_path == "/auth/login"

    def test_distinct_routes_never_cross(self, routes):
        for route in routes:
            assert find_route(routes, route.route_path + "/x") is route

    def test_no_match_raises(self, routes):
        with pytest.raises(NoRouteMatch, match="/shop"):
            find_route(routes, "/shop")

    def test_first_registered_wins_on_duplicates(self, tmp_path):
        first = make_route(tmp_path / "one", "/p/a")
        second = make_route(tmp_path / "two", "/p/a")
        assert find_route([first, second], "/p/a") is first

    def test_plain_prefix_match_is_not_segment_aware(self, tmp_path):
        # "/p/a" is a string prefix of "/p/ab", so it captures it when listed first.
        short = make_route(tmp_path, "/p/a")
        long = make_route(tmp_path, "/p/ab")
        assert find_route([short, long], "/p/ab") is short
        assert find_route([long, short], "/p/ab") is long


# ==================================================================
# Route / ActionSpec models
# ==================================================================

class TestModels:

    def test_route_is_immutable(self, tmp_path):
        route = make_route(tmp_path)
        with pytest.raises(ValidationError):
            route.route_path = "/other"

    def test_main_export_defaults_to_main(self):
        assert ActionSpec(name="a", runtime="nodejs:18").main_export == "main"

    def test_build_timeout_defaults_to_two_minutes(self):
        assert ActionSpec(name="a", runtime="nodejs:18").build_timeout_sec == 120

    def test_build_timeout_uses_declared_limit(self):
        action = ActionSpec(name="a", runtime="nodejs:18", limits={"timeout": 30000})
        assert action.build_timeout_sec == 30

    def test_build_timeout_is_capped_at_fifteen_minutes(self):
        action = ActionSpec(name="a", runtime="nodejs:18", limits={"timeout": 60 * 60 * 1000})
        assert action.build_timeout_sec == 15 * 60
