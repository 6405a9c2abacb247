"""
RabbitMQ transport.

Consumes the files queue with manual acknowledgment and a bounded prefetch
window. Each delivery is decoded, handed to the message gateway, answered
on its ``reply_to`` queue and then acknowledged, or left for redelivery
when the gateway classifies the outcome as quota-exceeded.

Quota-blocked messages are rejected into a retry exchange. Its queue holds
them for ``QUOTA_RETRY_DELAY_SECONDS`` and dead-letters them back onto the
files queue, so redelivery is delayed instead of immediate.
"""
import json

import aio_pika
from aio_pika.abc import AbstractChannel, AbstractIncomingMessage, AbstractRobustConnection
from pydantic import ValidationError as PydanticValidationError

from files_gateway.config import settings
from files_gateway.gateway.router import HandlerResult, MessageGateway
from files_gateway.logging_config import setup_logging
from files_gateway.outcomes import Outcome
from files_gateway.schemas.common import GatewayResponse, MessageEnvelope

logger = setup_logging()


class RabbitMQConsumer:
    def __init__(
        self,
        gateway: MessageGateway,
        url: str | None = None,
        queue_name: str | None = None,
        prefetch_count: int | None = None,
        retry_exchange: str | None = None,
        retry_delay_seconds: int | None = None,
    ):
        self.gateway = gateway
        self.url = url or settings.RABBITMQ_URL
        self.queue_name = queue_name or settings.FILES_QUEUE
        self.prefetch_count = prefetch_count or settings.PREFETCH_COUNT
        self.retry_exchange = (
            retry_exchange or settings.QUOTA_RETRY_EXCHANGE or f"{self.queue_name}.quota-retry"
        )
        self.retry_delay_seconds = (
            retry_delay_seconds if retry_delay_seconds is not None else settings.QUOTA_RETRY_DELAY_SECONDS
        )
        self._connection: AbstractRobustConnection | None = None
        self._channel: AbstractChannel | None = None

    async def start(self) -> None:
        self._connection = await aio_pika.connect_robust(
            self.url, heartbeat=settings.HEARTBEAT_SECONDS
        )
        self._channel = await self._connection.channel()
        await self._channel.set_qos(prefetch_count=self.prefetch_count)

        await self._declare_retry_queue()
        queue = await self._channel.declare_queue(
            self.queue_name,
            durable=True,
            arguments={"x-dead-letter-exchange": self.retry_exchange},
        )
        await queue.consume(self.on_message, no_ack=False)

        logger.info(
            f"Consuming queue={self.queue_name}, prefetch={self.prefetch_count}, "
            f"topics={self.gateway.topics}"
        )

    async def _declare_retry_queue(self) -> None:
        exchange = await self._channel.declare_exchange(
            self.retry_exchange, aio_pika.ExchangeType.FANOUT, durable=True
        )
        retry_queue = await self._channel.declare_queue(
            self.retry_exchange,
            durable=True,
            arguments={
                "x-message-ttl": self.retry_delay_seconds * 1000,
                # Expired messages go back to the files queue
                "x-dead-letter-exchange": "",
                "x-dead-letter-routing-key": self.queue_name,
            },
        )
        await retry_queue.bind(exchange)

    async def stop(self) -> None:
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
            self._channel = None

    async def on_message(self, message: AbstractIncomingMessage) -> None:
        try:
            envelope = MessageEnvelope.model_validate(json.loads(message.body))
        except (ValueError, PydanticValidationError) as e:
            # A message that cannot be decoded will never succeed
            logger.error(f"Discarding undecodable message: message_id={message.message_id}, error={e}")
            await self._reply(
                message,
                GatewayResponse(
                    success=False,
                    status=Outcome.BUSINESS_ERROR,
                    code="VALIDATION_ERROR",
                    message="Message body is not a valid envelope",
                ),
                None,
            )
            await self._settle(message, ack=True)
            return

        result = await self.gateway.handle(envelope.pattern, envelope.data)
        await self._reply(message, result.response, envelope.id)
        await self._settle(message, ack=result.ack, result=result)

    async def _reply(
        self,
        message: AbstractIncomingMessage,
        response: GatewayResponse,
        request_id: str | None,
    ) -> None:
        if not message.reply_to or self._channel is None:
            return

        if request_id is not None:
            response = response.model_copy(update={"id": request_id})
        try:
            await self._channel.default_exchange.publish(
                aio_pika.Message(
                    body=response.model_dump_json().encode(),
                    content_type="application/json",
                    correlation_id=message.correlation_id,
                ),
                routing_key=message.reply_to,
            )
        except Exception as e:
            logger.error(f"Failed to publish reply: reply_to={message.reply_to}, error={e}")

    async def _settle(
        self,
        message: AbstractIncomingMessage,
        ack: bool,
        result: HandlerResult | None = None,
    ) -> None:
        try:
            if ack:
                await message.ack()
            else:
                # Dead-lettered to the retry queue, which re-queues it after its TTL
                await message.reject(requeue=False)
        except Exception as e:
            logger.error(
                f"Failed to settle message: message_id={message.message_id}, ack={ack}, error={e}"
            )
            return

        if not ack and result is not None:
            logger.warning(
                f"Message left for redelivery: message_id={message.message_id}, "
                f"outcome={result.outcome.value}, retry_in={self.retry_delay_seconds}s"
            )
