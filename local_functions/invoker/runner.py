"""
Function invoker: runs one action for one request in a fresh process.

Every invocation spawns its own `node` process in the action's source
directory. Nothing is loaded or cached in the server process, so module
state, open handles and mutated globals never leak from one request into
the next. The price is a process spawn per request, which is fine for a
local development tool.

Process protocol:
  argv    the request params, JSON-encoded, as the single argument
  stdout  exactly one line `RESULT:<json>` on success; any other line is
          the function's own logging and is forwarded to our log
  stderr  error details when the function throws or rejects
  exit    non-zero on failure

There is no invocation timeout: a function that never settles keeps its
request open.
"""
import asyncio
import json
import logging
from typing import Any, Callable

from pydantic import ValidationError

from local_functions.config import NODE_BINARY, RESULT_MARKER
from local_functions.errors import InvocationError
from local_functions.models import InvocationResult, Route

logger = logging.getLogger(__name__)

# Lines the function itself prints end up here rather than in the response.
function_logger = logging.getLogger("local_functions.function")

CommandFactory = Callable[[Route, str], list[str]]

# ------------------------------------------------------------------
# Node bootstrap
# ------------------------------------------------------------------

# Evaluated with `node -e`, so process.argv[1] is the first extra argument.
# Entry and export names are substituted as JSON string literals.
_NODE_BOOTSTRAP = """\
const mod = require(require("path").resolve({entry}));
Promise.resolve()
  .then(() => mod[{main}](JSON.parse(process.argv[1])))
  .then((result) => console.log({marker} + JSON.stringify(result)))
  .catch((err) => {{
    console.error(err && err.stack ? err.stack : JSON.stringify(err));
    process.exitCode = 1;
  }});
"""


def node_command(route: Route, payload: str) -> list[str]:
    """Build the argv that runs route's entrypoint under node with 'payload'."""
    script = _NODE_BOOTSTRAP.format(
        entry=json.dumps(route.entrypoint),
        main=json.dumps(route.action.main_export),
        marker=json.dumps(RESULT_MARKER),
    )
    return [NODE_BINARY, "-e", script, payload]


# ------------------------------------------------------------------
# Output parsing
# ------------------------------------------------------------------

def parse_output(stdout: str) -> Any:
    """
    Scan the function's stdout and return the decoded RESULT payload.

    The last RESULT: line wins. Every other non-empty line is forwarded to
    the function logger.

    Raises:
        InvocationError — no RESULT: line was printed, or it is not valid JSON
    """
    raw = None
    for line in stdout.splitlines():
        if line.startswith(RESULT_MARKER):
            raw = line[len(RESULT_MARKER):]
        elif line.strip():
            function_logger.info("%s", line)

    if raw is None:
        # Exit 0 without a marker usually means the export did not return
        # a promise/value we could serialise. Never treat that as success.
        raise InvocationError(f"function produced no {RESULT_MARKER} line")
    try:
        return json.loads(raw)
    except ValueError as e:
        raise InvocationError(f"function printed a malformed result: {raw!r}") from e


# ------------------------------------------------------------------
# Main entry point
# ------------------------------------------------------------------

async def invoke_function(
    route: Route,
    params: Any,
    command: CommandFactory = node_command,
) -> InvocationResult:
    """
    Run the route's function once with 'params' and return its result.

    Steps:
      1. Serialise params to JSON
      2. Spawn the function process in the route's source directory
      3. Wait for it to exit, collecting stdout and stderr
      4. Parse the RESULT: line into an InvocationResult

    Raises:
        InvocationError — spawn failure, non-zero exit, no RESULT: line,
                          or a result that is not an object
    """
    # ------------------------------------------------------------------
    # Steps 1-2: spawn
    # ------------------------------------------------------------------
    payload = json.dumps(params)
    argv = command(route, payload)
    logger.debug("invoking %s in %s", route.route_path, route.source_dir)
    try:
        proc = await asyncio.create_subprocess_exec(
            *argv, cwd=route.source_dir,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise InvocationError(f"could not start {argv[0]!r} for {route.route_path}: {e}") from e

    # ------------------------------------------------------------------
    # Step 3: wait (no timeout)
    # ------------------------------------------------------------------
    stdout_b, stderr_b = await proc.communicate()
    stdout = stdout_b.decode(errors="replace")
    stderr = stderr_b.decode(errors="replace")

    if proc.returncode != 0:
        raise InvocationError(
            f"{route.route_path} exited with status {proc.returncode}",
            stderr=stderr,
        )

    for line in stderr.splitlines():
        if line.strip():
            function_logger.warning("%s", line)

    # ------------------------------------------------------------------
    # Step 4: parse
    # ------------------------------------------------------------------
    result = parse_output(stdout)

    try:
        return InvocationResult.model_validate(result)
    except ValidationError as e:
        raise InvocationError(f"{route.route_path} returned an unexpected result: {result!r}") from e
