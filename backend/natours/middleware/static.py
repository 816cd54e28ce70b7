"""
Natours API — Static Assets Middleware
=======================================

Serves files under the public directory for GET/HEAD requests before any
other stage except CORS. Paths that do not resolve to a regular file fall
through to the rest of the pipeline, so ``/`` still reaches the view router.
So do paths the filesystem refuses to look up, so they get the same error
responses as any other unmatched path.
"""

import stat

from starlette.concurrency import run_in_threadpool
from starlette.staticfiles import StaticFiles
from starlette.types import ASGIApp, Receive, Scope, Send


class StaticAssetsMiddleware:
    def __init__(self, app: ASGIApp, directory: str):
        self.app = app
        self.files = StaticFiles(directory=directory, check_dir=False)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope["method"] not in ("GET", "HEAD"):
            await self.app(scope, receive, send)
            return

        relative = scope["path"].lstrip("/")
        if not relative:
            await self.app(scope, receive, send)
            return

        try:
            full_path, stat_result = await run_in_threadpool(self.files.lookup_path, relative)
        except (OSError, ValueError):
            # Not a servable file name (e.g. embedded NUL); the router decides.
            await self.app(scope, receive, send)
            return
        if stat_result is None or not stat.S_ISREG(stat_result.st_mode):
            await self.app(scope, receive, send)
            return

        response = self.files.file_response(full_path, stat_result, scope)
        await response(scope, receive, send)
