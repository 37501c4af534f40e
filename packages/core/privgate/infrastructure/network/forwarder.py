"""TCP/TLS forwarding listener for the internal router."""

import asyncio
import contextlib
import ssl

import structlog

from privgate.domain.components.internal_router import InternalRouter
from privgate.domain.models.network import IsolationBoundary
from privgate.domain.models.system_error import NoHealthyTargetsError

logger = structlog.get_logger(__name__)

_CHUNK_SIZE = 64 * 1024


class ConnectionForwarder:
    """Accepts connections and pipes each one to a router-selected target.

    TLS is terminated here when a server context is given; the upstream leg
    can be re-encrypted with upstream_ssl. The payload is never inspected.
    With no eligible target a new connection is closed immediately. When a
    boundary is given, peers its ingress rules do not admit are closed
    before a target is leased.
    """

    def __init__(
        self,
        router: InternalRouter,
        host: str = "0.0.0.0",
        port: int = 443,
        ssl_context: ssl.SSLContext | None = None,
        upstream_ssl: ssl.SSLContext | None = None,
        backlog: int = 100,
        connect_timeout: float = 5.0,
        boundary: IsolationBoundary | None = None,
        ingress_port: int | None = None,
    ) -> None:
        """Initialize ConnectionForwarder.

        Args:
            router: Picks the target for each connection.
            host: Listen address.
            port: Listen port (0 picks a free port).
            ssl_context: Server TLS context; None listens in plain TCP.
            upstream_ssl: Client TLS context for the target leg; None is plain TCP.
            backlog: Maximum pending connections in the accept queue.
            connect_timeout: Timeout for connecting to a target.
            boundary: Boundary whose ingress rules gate each peer; None admits all.
            ingress_port: Port checked against the ingress rules; defaults to
                the bound port.
        """
        self._router = router
        self._host = host
        self._port = port
        self._ssl_context = ssl_context
        self._upstream_ssl = upstream_ssl
        self._backlog = backlog
        self._connect_timeout = connect_timeout
        self._boundary = boundary
        self._ingress_port = ingress_port
        self._server: asyncio.Server | None = None
        self._writers: set[asyncio.StreamWriter] = set()

    @property
    def bound_port(self) -> int | None:
        """Port actually bound, useful when started with port 0."""
        if self._server is None or not self._server.sockets:
            return None
        return self._server.sockets[0].getsockname()[1]

    @property
    def active_connections(self) -> int:
        return len(self._writers)

    async def start(self) -> None:
        if self._server is not None:
            return
        self._server = await asyncio.start_server(
            self._handle,
            host=self._host,
            port=self._port,
            ssl=self._ssl_context,
            backlog=self._backlog,
        )
        logger.info(
            "forwarder_started",
            host=self._host,
            port=self.bound_port,
            tls=self._ssl_context is not None,
        )

    async def stop(self) -> None:
        if self._server is None:
            return
        self._server.close()
        for writer in list(self._writers):
            writer.close()
        await self._server.wait_closed()
        self._server = None
        logger.info("forwarder_stopped")

    async def _handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        peer = writer.get_extra_info("peername")
        self._writers.add(writer)
        try:
            if not self._admits(peer):
                logger.warning("connection_refused_ingress", peer=str(peer))
                return
            async with self._router.connection() as target:
                await self._forward(reader, writer, target.address, target.port)
        except NoHealthyTargetsError:
            logger.warning("connection_refused_no_healthy_targets", peer=str(peer))
        finally:
            self._writers.discard(writer)
            writer.close()
            with contextlib.suppress(ConnectionError, ssl.SSLError):
                await writer.wait_closed()

    def _admits(self, peer: tuple[str, int] | None) -> bool:
        if self._boundary is None:
            return True
        port = self._ingress_port or self.bound_port
        if not peer or port is None:
            return False
        return self._boundary.allows_ingress(peer[0], port)

    async def _forward(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        address: str,
        port: int,
    ) -> None:
        try:
            upstream_reader, upstream_writer = await asyncio.wait_for(
                asyncio.open_connection(address, port, ssl=self._upstream_ssl),
                timeout=self._connect_timeout,
            )
        except (OSError, TimeoutError) as e:
            logger.warning("target_connect_failed", target=f"{address}:{port}", error=str(e))
            return

        try:
            await asyncio.gather(
                self._pipe(reader, upstream_writer),
                self._pipe(upstream_reader, writer),
            )
        finally:
            upstream_writer.close()
            with contextlib.suppress(ConnectionError, ssl.SSLError):
                await upstream_writer.wait_closed()

    @staticmethod
    async def _pipe(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        try:
            while data := await reader.read(_CHUNK_SIZE):
                writer.write(data)
                await writer.drain()
            if writer.can_write_eof():
                writer.write_eof()
        except (ConnectionError, ssl.SSLError) as e:
            # The other leg is closed by the caller
            logger.debug("stream_closed", error=str(e))
