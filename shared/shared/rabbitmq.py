import aio_pika

EXCHANGE_NAME = "domain_events"


class RabbitPublisher:
    """
    Publishes JSON domain events to a durable topic exchange.

    Disabled when no url is given. Publish failures are logged, never raised.
    """

    def __init__(self, url: str | None, service_name: str, exchange_name: str = EXCHANGE_NAME):
        self.url = url
        self.service_name = service_name
        self.exchange_name = exchange_name
        self.enabled = bool(url)
        self._connection: aio_pika.abc.AbstractRobustConnection | None = None
        self._exchange: aio_pika.abc.AbstractExchange | None = None

    @property
    def connected(self) -> bool:
        return self._connection is not None and not self._connection.is_closed

    async def connect(self):
        if not self.enabled or self.connected:
            return

        try:
            self._connection = await aio_pika.connect_robust(self.url)
            channel = await self._connection.channel()
            self._exchange = await channel.declare_exchange(
                self.exchange_name,
                aio_pika.ExchangeType.TOPIC,
                durable=True,
            )
        except Exception as e:
            print(f"[{self.service_name}] RabbitMQ connect to {self.exchange_name} failed: {e}")
            self._connection = None
            self._exchange = None
            raise

    async def publish(self, routing_key: str, message_body: str):
        if not self.enabled:
            return

        try:
            await self.connect()
            await self._exchange.publish(
                aio_pika.Message(
                    body=message_body.encode("utf-8"),
                    content_type="application/json",
                    delivery_mode=aio_pika.DeliveryMode.PERSISTENT,
                    app_id=self.service_name,
                    type=routing_key,
                ),
                routing_key=routing_key,
            )
        except Exception as e:
            print(f"[{self.service_name}] event {routing_key} not published: {e}")

    async def close(self):
        try:
            if self.connected:
                await self._connection.close()
        finally:
            self._connection = None
            self._exchange = None
