"""
Build coordination: keeps each action's build output fresh while the server runs.

Only actions whose package.json declares a "build" script get a coordinator.
Each coordinator owns a single BuildState for its route:

  IDLE ──(start / file change)──▶ IN_PROGRESS ──(build done + 0.5s)──▶ IDLE

  start()   → run one build right away, then watch the source tree
  change    → ignored while IN_PROGRESS, otherwise triggers a new build
  build     → `npm run build` in the source directory, killed on timeout

There is no "failed" state. A failed build is logged with its output and the
route goes back to IDLE, ready for the next change. Requests never see build
errors; they simply run whatever code is on disk.

All state changes happen in callbacks on the event loop, one at a time, so
the flag needs no lock. Coordinators for different routes never wait on
each other.
"""
import asyncio
import contextlib
import logging
from pathlib import Path
from typing import Optional

from watchfiles import awatch

from local_functions.config import BUILD_COMMAND, QUIESCENCE_DELAY_SEC
from local_functions.errors import BuildError
from local_functions.models import BuildState, Route

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------
# Build process
# ------------------------------------------------------------------

def _kill(proc: asyncio.subprocess.Process) -> None:
    with contextlib.suppress(ProcessLookupError):
        proc.kill()


async def run_build(cmd: list[str], cwd: Path, timeout: float) -> str:
    """
    Run a build command, return its combined output.

    Raises:
        BuildError — the command could not start, exited non-zero, or ran
                     longer than 'timeout' seconds (it is killed first)
    """
    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd, cwd=cwd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )
    except OSError as e:
        raise BuildError(f"Command {cmd[0]!r} could not be started: {e}") from e

    try:
        stdout, _ = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        _kill(proc)
        stdout, _ = await proc.communicate()
        raise BuildError(
            f"Command {cmd[0]!r} timed out after {timeout}s",
            output=stdout.decode(errors="replace"),
        )
    except asyncio.CancelledError:
        _kill(proc)
        # Reap the child before giving up the loop.
        with contextlib.suppress(Exception):
            await asyncio.shield(proc.wait())
        raise

    output = stdout.decode(errors="replace")
    if proc.returncode != 0:
        raise BuildError(
            f"Command {cmd[0]!r} failed (exit {proc.returncode})",
            output=output,
        )
    return output


# ------------------------------------------------------------------
# Per-route coordinator
# ------------------------------------------------------------------

class BuildCoordinator:
    """Owns the build state and the file watcher of a single route."""

    def __init__(
        self,
        route: Route,
        command: Optional[list[str]] = None,
        quiescence_sec: float = QUIESCENCE_DELAY_SEC,
    ):
        self.route = route
        self.command = command or BUILD_COMMAND
        self.quiescence_sec = quiescence_sec
        self.state = BuildState.IDLE
        self.builds_started = 0

        self._build_task: Optional[asyncio.Task] = None
        self._watch_task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None

    # --- lifecycle ---

    def start(self) -> None:
        """Kick off the initial build and begin watching the source tree."""
        self.trigger()
        self._stop_event = asyncio.Event()
        self._watch_task = asyncio.create_task(self._watch())

    async def stop(self) -> None:
        """Stop watching and abandon any build still running."""
        if self._stop_event is not None:
            self._stop_event.set()
        for task in (self._watch_task, self._build_task):
            if task is not None and not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task

    # --- state machine ---

    def trigger(self) -> bool:
        """
        Start a build unless one is already running.

        Returns True if a build was started. The state flips to IN_PROGRESS
        before control returns to the loop, so no second build can slip in.
        """
        if self.state is BuildState.IN_PROGRESS:
            return False
        self.state = BuildState.IN_PROGRESS
        self.builds_started += 1
        self._build_task = asyncio.create_task(self._build())
        return True

    def on_change(self, changes: set) -> bool:
        """Handle one batch of filesystem events. Dropped while a build runs."""
        if self.state is BuildState.IN_PROGRESS:
            return False
        for change, path in sorted(changes, key=lambda c: c[1]):
            logger.info("file %s detected %s", getattr(change, "name", change), path)
        return self.trigger()

    async def _build(self) -> None:
        route_path = self.route.route_path
        logger.info('running "%s" on %s', " ".join(self.command), route_path)
        try:
            await run_build(
                self.command,
                cwd=self.route.source_dir,
                timeout=self.route.action.build_timeout_sec,
            )
        except BuildError as e:
            logger.error("error building %s: %s", route_path, e)
            if e.output:
                logger.error("%s", e.output.rstrip())
        else:
            logger.info("built %s", route_path)
        finally:
            # Let the build's own writes settle before listening again.
            await asyncio.sleep(self.quiescence_sec)
            self.state = BuildState.IDLE

    async def _watch(self) -> None:
        try:
            async for changes in awatch(self.route.source_dir, stop_event=self._stop_event):
                self.on_change(changes)
        except Exception:
            logger.exception(
                "stopped watching %s; rebuilds are disabled for %s",
                self.route.source_dir, self.route.route_path,
            )


# ------------------------------------------------------------------
# All coordinators of a project
# ------------------------------------------------------------------

class BuildManager:
    """
    Collects a coordinator for every route with a build step.

    Routes are registered while the registry is built (no event loop yet);
    the coordinators are started and stopped by the app lifespan.
    """

    def __init__(self, command: Optional[list[str]] = None, quiescence_sec: float = QUIESCENCE_DELAY_SEC):
        self.command = command
        self.quiescence_sec = quiescence_sec
        self.coordinators: list[BuildCoordinator] = []

    def register(self, route: Route) -> Optional[BuildCoordinator]:
        # Routes without a build script never get a build or a watcher.
        if not route.has_build:
            return None
        coordinator = BuildCoordinator(route, command=self.command, quiescence_sec=self.quiescence_sec)
        self.coordinators.append(coordinator)
        return coordinator

    def start_all(self) -> None:
        for coordinator in self.coordinators:
            coordinator.start()

    async def stop_all(self) -> None:
        for coordinator in self.coordinators:
            await coordinator.stop()
