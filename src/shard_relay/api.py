"""
Local HTTP status surface for the relay client.

Routes:
    GET  /status          -> {"connected": bool}
    GET  /connection      -> link status
    POST /shards/refresh  -> {"shards": [...]}
    POST /relay           -> {"host": str, "guest": str}
"""

from __future__ import annotations

import json
import logging

from aiohttp import web

from .client import RelayClient
from .errors import LinkError, UnsupportedTransportError

logger = logging.getLogger(__name__)

CLIENT_KEY = web.AppKey("client", RelayClient)


async def handle_status(request: web.Request) -> web.Response:
    client = request.app[CLIENT_KEY]
    return web.json_response(client.get_status().to_dict())


async def handle_connection(request: web.Request) -> web.Response:
    client = request.app[CLIENT_KEY]
    return web.json_response(client.get_connection_status().to_dict())


async def handle_refresh_shards(request: web.Request) -> web.Response:
    client = request.app[CLIENT_KEY]
    shards = await client.refresh_shards()
    return web.json_response({"shards": [shard.to_dict() for shard in shards]})


async def handle_relay(request: web.Request) -> web.Response:
    client = request.app[CLIENT_KEY]
    try:
        body = await request.json()
    except json.JSONDecodeError:
        return web.json_response({"error": "invalid JSON body"}, status=400)

    shard = body.get("shard") if isinstance(body, dict) else None
    if not isinstance(shard, str) or not shard:
        return web.json_response({"error": "missing 'shard'"}, status=400)
    transport = body.get("transport", "udp")

    try:
        host, guest = await client.request_relay(shard, str(transport))
    except UnsupportedTransportError as e:
        return web.json_response({"error": str(e)}, status=400)
    except LinkError as e:
        logger.error("Relay through %s negotiated but link failed: %s", shard, e)
        return web.json_response({"error": str(e)}, status=502)

    return web.json_response({"host": host, "guest": guest})


def create_app(client: RelayClient) -> web.Application:
    app = web.Application()
    app[CLIENT_KEY] = client
    app.router.add_get("/status", handle_status)
    app.router.add_get("/connection", handle_connection)
    app.router.add_post("/shards/refresh", handle_refresh_shards)
    app.router.add_post("/relay", handle_relay)
    return app


class StatusServer:
    """Runs the status application on the configured host and port."""

    def __init__(self, client: RelayClient, host: str | None = None, port: int | None = None) -> None:
        self.host = host if host is not None else client.config.api_host
        self.port = port if port is not None else client.config.api_port
        self.app = create_app(client)
        self.runner: web.AppRunner | None = None

    async def start(self) -> None:
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()
        site = web.TCPSite(self.runner, self.host, self.port)
        await site.start()
        logger.info("Status API listening on %s:%d", self.host, self.port)

    async def stop(self) -> None:
        if self.runner:
            await self.runner.cleanup()
            self.runner = None
        logger.info("Status API stopped")
