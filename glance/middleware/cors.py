"""
CORS split by path.

Dashboard routes only accept the configured dashboard origins (with
credentials). Public widget routes are called from any customer site, so they
answer every origin with `*` and no credentials.
"""

from starlette.middleware.cors import CORSMiddleware
from starlette.types import ASGIApp, Receive, Scope, Send

PUBLIC_PATHS = ("/api/widget-events",)


class ScopedCORSMiddleware:
    def __init__(
        self,
        app: ASGIApp,
        dashboard_origins: list[str],
        public_paths: tuple[str, ...] = PUBLIC_PATHS,
    ) -> None:
        self.public_paths = public_paths
        self.public = CORSMiddleware(
            app,
            allow_origins=["*"],
            allow_methods=["POST", "OPTIONS"],
            allow_headers=["Content-Type"],
        )
        self.dashboard = CORSMiddleware(
            app,
            allow_origins=dashboard_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http" and scope["path"].startswith(self.public_paths):
            await self.public(scope, receive, send)
        else:
            await self.dashboard(scope, receive, send)
