"""
RabbitMQ Event Publisher
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import Dict, Optional

import pika

from printshop.config import settings
from printshop.schemas.order import OrderEvent

logger = logging.getLogger(__name__)

ROUTING_KEYS = {
    "OrderCreated": "order.created",
    "OrderStatusChanged": "order.status.changed",
    "PaymentStatusChanged": "order.payment.changed",
}


class EventPublisher:
    """Publisher for sending order events to RabbitMQ"""

    def __init__(self, enabled: Optional[bool] = None):
        self.rabbitmq_url = settings.RABBITMQ_URL
        self.exchange = settings.RABBITMQ_EXCHANGE
        self.enabled = settings.EVENTS_ENABLED if enabled is None else enabled

    def build_event(self, event_type: str, data: Dict) -> OrderEvent:
        return OrderEvent(
            event_type=event_type,
            event_id=str(uuid.uuid4()),
            timestamp=datetime.now(timezone.utc).isoformat(),
            source=settings.SERVICE_NAME,
            data=data,
        )

    def publish(self, event_type: str, data: Dict) -> bool:
        """
        Publish an event to the orders exchange

        Args:
            event_type: One of OrderCreated, OrderStatusChanged, PaymentStatusChanged
            data: Event payload

        Returns:
            True if published successfully, False otherwise
        """
        if not self.enabled:
            logger.debug(f"Event publishing disabled; dropping {event_type}")
            return False

        event = self.build_event(event_type, data)
        connection = None
        try:
            connection = pika.BlockingConnection(
                pika.URLParameters(self.rabbitmq_url)
            )
            channel = connection.channel()

            channel.exchange_declare(
                exchange=self.exchange,
                exchange_type='topic',
                durable=True
            )

            # Enable publisher confirms
            channel.confirm_delivery()

            channel.basic_publish(
                exchange=self.exchange,
                routing_key=ROUTING_KEYS[event_type],
                body=event.model_dump_json(),
                properties=pika.BasicProperties(
                    delivery_mode=2,  # Persistent message
                    content_type='application/json',
                    correlation_id=event.event_id
                ),
                mandatory=False
            )

            logger.info(f"Event published: {event_type} (ID: {event.event_id})")
            return True

        except pika.exceptions.AMQPError as e:
            logger.warning(f"Could not publish {event_type} event: {e}")
            return False
        finally:
            if connection is not None and connection.is_open:
                connection.close()

    def publish_order_created(self, order_data: Dict) -> bool:
        return self.publish("OrderCreated", order_data)

    def publish_order_status_changed(self, order_data: Dict) -> bool:
        return self.publish("OrderStatusChanged", order_data)

    def publish_payment_status_changed(self, payment_data: Dict) -> bool:
        return self.publish("PaymentStatusChanged", payment_data)
