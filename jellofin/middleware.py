"""Access log and IP access control, both pure ASGI"""

import ipaddress
import json
import time
from typing import Iterable, List, Union

from .services.log_service import log_service

Network = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]


def parse_networks(entries: Iterable[str]) -> List[Network]:
    """Networks of an ACL; a bare address becomes a single host network"""
    return [ipaddress.ip_network(entry.strip(), strict=False) for entry in entries if entry.strip()]


def _client_host(scope) -> str:
    client = scope.get("client")
    return client[0] if client else ""


class AccessLogMiddleware:
    """One line per request: client, method, path, status, size and latency"""

    def __init__(self, app):
        self.app = app
        self.log = log_service.access_logger

    async def __call__(self, scope, receive, send):
        if scope.get("type") != "http":
            return await self.app(scope, receive, send)

        t0 = time.perf_counter()
        status_code = 0
        length = 0

        async def send_wrapper(message):
            nonlocal status_code, length
            if message["type"] == "http.response.start":
                status_code = message.get("status", status_code)
            elif message["type"] == "http.response.body":
                length += len(message.get("body", b""))
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            dt = (time.perf_counter() - t0) * 1000
            path = scope.get("path", "")
            if scope.get("query_string"):
                path = f"{path}?{scope['query_string'].decode('latin-1')}"
            self.log.info(
                "%s %s %s %d %d %0.1fms",
                _client_host(scope), scope.get("method", ""), path, status_code or 500, length, dt,
            )


class IPAccessMiddleware:
    """Refuse clients outside the configured networks; an empty list allows everyone"""

    def __init__(self, app, networks: List[Network]):
        self.app = app
        self.networks = networks

    def allowed(self, host: str) -> bool:
        if not self.networks:
            return True
        try:
            address = ipaddress.ip_address(host)
        except ValueError:
            return False
        return any(address in network for network in self.networks)

    async def __call__(self, scope, receive, send):
        if scope.get("type") != "http" or self.allowed(_client_host(scope)):
            return await self.app(scope, receive, send)

        log_service.warning(f"Refused connection from {_client_host(scope)}")
        body = json.dumps({"status": 403, "message": "Forbidden"}).encode("utf-8")
        await send(
            {
                "type": "http.response.start",
                "status": 403,
                "headers": [
                    (b"content-type", b"application/json"),
                    (b"content-length", str(len(body)).encode("ascii")),
                ],
            }
        )
        await send({"type": "http.response.body", "body": body})
