"""
Background cleanup of abandoned chunk sessions.

A sender that disappears mid-upload never delivers its last chunk, so its
session would otherwise stay in memory forever. The sweeper periodically
evicts sessions that have been idle longer than the configured TTL.
"""
import asyncio

from files_gateway.config import settings
from files_gateway.logging_config import setup_logging
from files_gateway.services.chunked_upload import ChunkSessionManager

logger = setup_logging()


def cleanup_idle_upload_sessions(manager: ChunkSessionManager) -> int:
    """
    Evict idle upload sessions once.

    Returns:
        Number of evicted sessions
    """
    try:
        evicted = manager.evict_idle()
    except Exception as e:
        logger.error(f"Upload session cleanup failed: {e}", exc_info=True)
        return 0

    if evicted:
        logger.info(f"Cleaned up {len(evicted)} idle upload sessions, {len(manager)} still open")
    return len(evicted)


async def run_session_sweeper(
    manager: ChunkSessionManager,
    stop_event: asyncio.Event,
    interval_seconds: float | None = None,
) -> None:
    """
    Run ``cleanup_idle_upload_sessions`` every interval until stopped.
    """
    interval = interval_seconds or settings.CHUNK_SWEEP_INTERVAL_SECONDS
    logger.info(f"Upload session sweeper started: interval={interval}s, ttl={manager.ttl_seconds}s")

    while not stop_event.is_set():
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=interval)
        except asyncio.TimeoutError:
            cleanup_idle_upload_sessions(manager)

    logger.info("Upload session sweeper stopped")
