"""
Click worker for the queued click pipeline (click_pipeline = "queue").

Consumes ClickContext messages in batches and runs the ClickRecorder for
each. Messages are acknowledged after the batch was attempted: recording
failures are already logged by the recorder and a retry would double-count
the clicks that did go through.

Usage:
    python -m shortlink_app.hit_processor.click_worker
"""

import asyncio
import logging
import signal
import sys
from typing import List

from shortlink_app.config import settings
from shortlink_app.queue.models import ClickContext
from shortlink_app.queue.strategies import QueueStrategy
from shortlink_app.services.click_recorder import ClickRecorder

logger = logging.getLogger(__name__)


class ClickWorker:
    """
    Batch consumer for click messages.

    Args:
        queue: Queue strategy to consume from
        recorder: Recorder that persists each click
        batch_size: Messages per read
    """

    def __init__(self, queue: QueueStrategy, recorder: ClickRecorder, batch_size: int = None):
        self.queue = queue
        self.recorder = recorder
        self.batch_size = batch_size or settings.queue_batch_size
        self.running = False
        self.processed_count = 0
        self.failed_count = 0

    async def run_once(self) -> int:
        """Process one batch. Returns the number of messages handled."""
        messages = await self.queue.consume_batch(
            queue_name=settings.queue_name,
            batch_size=self.batch_size,
            block_time=settings.queue_block_ms,
        )
        if not messages:
            return 0

        await self._process_batch(messages)

        message_ids = [msg.message_id for msg in messages if msg.message_id]
        if message_ids:
            await self.queue.ack(settings.queue_name, message_ids)

        self.processed_count += len(messages)
        logger.info("Processed %d clicks. Total: %d", len(messages), self.processed_count)
        return len(messages)

    async def _process_batch(self, messages: List[ClickContext]):
        results = await asyncio.gather(
            *(self.recorder.record(msg.url_id, msg) for msg in messages)
        )
        self.failed_count += sum(1 for ok in results if not ok)

    async def start(self):
        self.running = True
        logger.info("Click worker started (batch size %d)", self.batch_size)

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.stop)
            except NotImplementedError:
                pass  # Windows

        while self.running:
            try:
                await self.run_once()
            except asyncio.CancelledError:
                logger.info("Worker task cancelled.")
                break
            except Exception:
                logger.exception("Error processing click batch")
                await asyncio.sleep(1)

        logger.info("Click worker stopped")

    def stop(self):
        self.running = False


async def main():
    from shortlink_app.database.connection import SessionLocal, engine
    from shortlink_app.queue.factory import QueueBackend, QueueFactory

    logger.info("Environment: %s, queue backend: %s", settings.environment, settings.queue_backend)

    queue = QueueFactory.create(QueueBackend(settings.queue_backend))
    worker = ClickWorker(queue=queue, recorder=ClickRecorder(SessionLocal))

    try:
        await worker.start()
    finally:
        await engine.dispose()


if __name__ == "__main__":
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
    )
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
    except Exception:
        logger.exception("Fatal error")
        sys.exit(1)
