"""
Application factory for the local functions emulator.

The CLI builds the route list first (which also collects the build
coordinators), then hands both to create_app(). The app's lifespan starts
the initial builds and file watchers once the event loop is running, and
stops them on shutdown.

    app = create_app(routes, builds)
    uvicorn.run(app, port=9000)
"""
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from local_functions.api.routes import router
from local_functions.build.coordinator import BuildManager
from local_functions.invoker.runner import invoke_function
from local_functions.models import Route


def create_app(
    routes: list[Route],
    builds: Optional[BuildManager] = None,
    invoke=invoke_function,
) -> FastAPI:
    """
    Build the FastAPI app serving 'routes'.

    'invoke' is the coroutine function called as invoke(route, params);
    tests swap it for a fake so no real function process is needed.
    """
    builds = builds or BuildManager()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        builds.start_all()
        try:
            yield
        finally:
            await builds.stop_all()

    app = FastAPI(
        title="Local Functions",
        description="Local emulator for packaged serverless actions.",
        version="0.1.0",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.routes = routes
    app.state.builds = builds
    app.state.invoke = invoke

    app.include_router(router)
    return app
