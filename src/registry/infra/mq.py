import json
from faststream.rabbit import RabbitBroker

from src.registry.core.settings import settings

broker = RabbitBroker(settings.RABBIT_URL)

async def start_broker() -> None:
    await broker.start()

async def stop_broker() -> None:
    await broker.stop()

async def enqueue_job_submission(job_id: str) -> None:
    await broker.publish(json.dumps({"job_id": job_id}), queue=settings.QUEUE_NAME)
