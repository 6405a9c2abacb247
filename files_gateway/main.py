"""
Service entry point.

Wires the storage router, quota gate, chunk session manager and message
gateway together, then consumes the files queue until interrupted.
"""
import asyncio
import signal
from dataclasses import dataclass

from files_gateway.config import settings
from files_gateway.dependencies.storage import get_storage_router
from files_gateway.gateway.consumer import RabbitMQConsumer
from files_gateway.gateway.router import MessageGateway
from files_gateway.logging_config import setup_logging
from files_gateway.services.chunked_upload import ChunkSessionManager
from files_gateway.services.cleanup import run_session_sweeper
from files_gateway.services.files import FilesService
from files_gateway.services.processing import FileProcessor
from files_gateway.services.quota import QuotaGate
from files_gateway.storage.router import StorageRouter

logger = setup_logging()


@dataclass
class Application:
    router: StorageRouter
    quota_gate: QuotaGate
    files_service: FilesService
    sessions: ChunkSessionManager
    gateway: MessageGateway

    async def aclose(self) -> None:
        await self.quota_gate.aclose()
        await self.router.aclose()


def build_application(router: StorageRouter | None = None, quota_gate: QuotaGate | None = None) -> Application:
    router = router or get_storage_router()
    quota_gate = quota_gate or QuotaGate()
    files_service = FilesService(router, quota_gate)
    sessions = ChunkSessionManager(files_service, FileProcessor())
    return Application(
        router=router,
        quota_gate=quota_gate,
        files_service=files_service,
        sessions=sessions,
        gateway=MessageGateway(files_service, sessions),
    )


async def serve() -> None:
    app = build_application()
    consumer = RabbitMQConsumer(app.gateway)
    stop_event = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            pass

    if not app.quota_gate.enabled:
        logger.warning("QUOTA_SERVICE_URL is not set, uploads are admitted without quota checks")

    sweeper = asyncio.create_task(run_session_sweeper(app.sessions, stop_event))
    try:
        await consumer.start()
        logger.info(
            f"Files gateway running: environment={settings.ENVIRONMENT}, "
            f"default_provider={app.router.default_provider.value}"
        )
        await stop_event.wait()
    finally:
        stop_event.set()
        await consumer.stop()
        await sweeper
        await app.aclose()
        logger.info("Files gateway stopped")


def run() -> None:
    asyncio.run(serve())


if __name__ == "__main__":
    run()
