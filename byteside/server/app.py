"""FastAPI application serving the state API, the viewer and the ``/_ws`` channel.

One :class:`BytesideServer` owns the state store, gateway and ingress for the
lifetime of the process. :func:`create_app` builds the ASGI app around it, so
tests can construct a fresh server per test.

All routes are ``async def``: state writes and the synchronous notification
pass they trigger always run on the event loop.
"""

from __future__ import annotations

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Callable

import uvicorn
from fastapi import FastAPI, HTTPException, Request, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse, Response
from fastapi.staticfiles import StaticFiles

from byteside.avatar import find_avatar
from byteside.exceptions import AvatarNotFoundError, ManifestError
from byteside.manifest import load_manifest
from byteside.models import AvatarManifest, BytesideConfig
from byteside.protocol import WS_PATH
from byteside.server.gateway import TransportGateway, WebSocketConnection
from byteside.server.ingress import UpdateIngress
from byteside.state import StateStore

logger = logging.getLogger(__name__)

STATIC_DIR = Path(__file__).resolve().parent.parent / "static"

MIME_TYPES = {
    ".json": "application/json",
    ".webm": "video/webm",
    ".mp4": "video/mp4",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".svg": "image/svg+xml",
    ".txt": "text/plain; charset=utf-8",
}

AVATAR_CACHE_CONTROL = "public, max-age=3600"


class BytesideServer:
    """Process-lifetime context: config, avatar, store, gateway and ingress.

    Args:
        config: Resolved configuration.
        manifest: Manifest of the active avatar, if one could be loaded.
            Custom state labels it declares become legal for updates.
        avatar_path: Directory of the active avatar.
        store: State store to use (a fresh one by default).
    """

    def __init__(
        self,
        config: BytesideConfig | None = None,
        *,
        manifest: AvatarManifest | None = None,
        avatar_path: Path | None = None,
        store: StateStore | None = None,
    ) -> None:
        self.config = config or BytesideConfig()
        self.manifest = manifest
        self.avatar_path = avatar_path
        self.store = store or StateStore()
        self.gateway = TransportGateway(self.store)
        custom = manifest.state_names if manifest is not None else ()
        self.ingress = UpdateIngress(self.store, custom)

    @classmethod
    def from_config(cls, config: BytesideConfig) -> "BytesideServer":
        """Resolve the configured avatar and load its manifest.

        A missing or invalid avatar is logged and the server runs with the
        canonical states only.
        """
        manifest = None
        avatar_path = None
        try:
            avatar_path = find_avatar(config.avatar, config.avatar_paths)
            manifest = load_manifest(avatar_path)
        except (AvatarNotFoundError, ManifestError) as e:
            logger.warning("Avatar %r unavailable: %s", config.avatar, e)

        return cls(config, manifest=manifest, avatar_path=avatar_path)

    def avatar_dir(self, name: str) -> Path:
        """Directory holding the files of avatar ``name``.

        Raises:
            AvatarNotFoundError: If the avatar cannot be found.
        """
        if name == self.config.avatar and self.avatar_path is not None:
            return self.avatar_path
        return find_avatar(name, self.config.avatar_paths)


def _read_json_body(raw: bytes) -> Any:
    try:
        return json.loads(raw) if raw else None
    except ValueError:
        return None


def create_app(server: BytesideServer) -> FastAPI:
    """Build the FastAPI app around ``server``."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        server.gateway.attach()
        logger.info("byteside server ready (avatar: %s)", server.config.avatar)
        try:
            yield
        finally:
            server.gateway.close_all()
            server.gateway.detach()
            logger.info("byteside server stopped")

    app = FastAPI(title="byteside", lifespan=lifespan)
    app.state.byteside = server

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    if STATIC_DIR.is_dir():
        app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")

    @app.get("/state")
    async def get_state() -> dict:
        """Current state snapshot."""
        return server.store.get_state().to_dict()

    @app.post("/state")
    async def post_state(request: Request) -> JSONResponse:
        """Propose a state change: body ``{"state": <label>}``."""
        body = _read_json_body(await request.body())
        candidate = body.get("state") if isinstance(body, dict) else None

        result = server.ingress.submit(candidate)
        return JSONResponse(result.to_dict(), status_code=200 if result.ok else 400)

    @app.get("/config")
    async def get_config() -> dict:
        return {"avatar": server.config.avatar}

    @app.get("/avatars/{avatar}/{file_path:path}")
    async def get_avatar_file(avatar: str, file_path: str) -> Response:
        """Serve one file from an avatar directory."""
        if not file_path:
            raise HTTPException(status_code=400, detail="Invalid avatar path")
        if ".." in Path(avatar).parts or ".." in Path(file_path).parts:
            raise HTTPException(status_code=400, detail="Invalid path")

        try:
            avatar_dir = server.avatar_dir(avatar).resolve()
        except AvatarNotFoundError:
            raise HTTPException(status_code=404, detail="Avatar not found")

        full_path = (avatar_dir / file_path).resolve()
        if avatar_dir not in full_path.parents:
            raise HTTPException(status_code=400, detail="Invalid path")
        if not full_path.is_file():
            raise HTTPException(status_code=404, detail="File not found")

        content_type = MIME_TYPES.get(full_path.suffix.lower(), "application/octet-stream")
        return Response(
            content=full_path.read_bytes(),
            media_type=content_type,
            headers={"Cache-Control": AVATAR_CACHE_CONTROL},
        )

    @app.get("/", response_class=HTMLResponse)
    async def index() -> HTMLResponse:
        return HTMLResponse((STATIC_DIR / "index.html").read_text(encoding="utf-8"))

    @app.websocket(WS_PATH)
    async def state_channel(websocket: WebSocket) -> None:
        await websocket.accept()
        connection = WebSocketConnection(websocket)
        connection.start()

        if not server.gateway.open(connection):
            await connection.wait_closed()
            return

        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
                raw = message.get("text")
                if raw is None:
                    raw = message.get("bytes")
                server.gateway.receive(connection, raw)
        finally:
            server.gateway.close(connection)
            await connection.wait_closed()

    return app


class BytesideUvicornServer(uvicorn.Server):
    """uvicorn server that runs exit callbacks before shutting down."""

    def __init__(self, config: uvicorn.Config) -> None:
        super().__init__(config)
        self.exit_callbacks: list[Callable[[], None]] = []

    def handle_exit(self, sig: int, frame: Any) -> None:
        callbacks, self.exit_callbacks = self.exit_callbacks, []
        for callback in callbacks:
            callback()
        super().handle_exit(sig, frame)


async def run_server(
    server: BytesideServer,
    *,
    on_started: Callable[[BytesideUvicornServer], Any] | None = None,
    log_level: str = "warning",
) -> None:
    """Serve ``server`` with uvicorn until shut down.

    Args:
        server: The byteside context to serve.
        on_started: Called once the socket is listening. May be a coroutine
            function.
        log_level: uvicorn's own log level.
    """
    app = create_app(server)
    config = uvicorn.Config(
        app,
        host=server.config.server.host,
        port=server.config.server.port,
        log_level=log_level,
    )
    uv_server = BytesideUvicornServer(config)
    serve_task = asyncio.create_task(uv_server.serve(), name="byteside-uvicorn")

    try:
        while not uv_server.started:
            if serve_task.done():
                # Startup failed (port in use etc.); surface the exception.
                await serve_task
                return
            await asyncio.sleep(0.05)

        logger.info(
            "Listening on http://%s:%d",
            server.config.server.host,
            server.config.server.port,
        )
        if on_started is not None:
            result = on_started(uv_server)
            if asyncio.iscoroutine(result):
                await result

        await serve_task
    finally:
        if not serve_task.done():
            uv_server.should_exit = True
            await serve_task
