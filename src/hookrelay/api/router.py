"""FastAPI router for hookrelay API endpoints."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Query, status

from hookrelay import __version__
from hookrelay.logging import get_logger
from hookrelay.models import DeliveryStatus

from .dependencies import AdminAuth, InternalAuth, ServiceDep, current_service
from .schemas import (
    DeliveryListResponse,
    DeliveryRecordResponse,
    EventResponse,
    HealthResponse,
    IngestRequest,
    IngestResponse,
    MessageResponse,
    RegisteredWebhookResponse,
    RegisterWebhookRequest,
    RetryResponse,
    StatsResponse,
    SubscriptionListResponse,
    SubscriptionResponse,
    SubscriptionUpdateRequest,
)

logger = get_logger(__name__)

router = APIRouter()


@router.post(
    "/events",
    response_model=IngestResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[InternalAuth],
    tags=["events"],
)
async def ingest_event(request: IngestRequest, service: ServiceDep) -> IngestResponse:
    """Admit an event and fan it out to active subscriptions.

    Returns once the event and its delivery jobs are persisted. The
    deliveries themselves run asynchronously in the worker pool.
    """
    result = await service.ingest_event(request.event_type, request.payload)
    return IngestResponse(event_id=result.event.id, jobs_enqueued=len(result.jobs))


@router.get(
    "/events/{event_id}",
    response_model=EventResponse,
    dependencies=[AdminAuth],
    tags=["events"],
)
async def get_event(event_id: str, service: ServiceDep) -> EventResponse:
    """Get an event and its delivery status."""
    event = await service.get_event(event_id)
    return EventResponse.from_event(event)


@router.post(
    "/webhooks/register",
    response_model=RegisteredWebhookResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["webhooks"],
)
async def register_webhook(
    request: RegisterWebhookRequest,
    service: ServiceDep,
) -> RegisteredWebhookResponse:
    """Register a webhook subscription.

    The response carries the generated signing secret. It is not
    returned by any other endpoint.
    """
    subscription = await service.register_webhook(
        client_name=request.client_name,
        event_type=request.event_type,
        target_url=request.target_url,
    )
    return RegisteredWebhookResponse.from_subscription(subscription)


@router.get(
    "/webhooks",
    response_model=SubscriptionListResponse,
    dependencies=[AdminAuth],
    tags=["webhooks"],
)
async def list_webhooks(service: ServiceDep) -> SubscriptionListResponse:
    """List all subscriptions, oldest first."""
    subscriptions = await service.list_subscriptions()
    return SubscriptionListResponse(
        webhooks=[SubscriptionResponse.from_subscription(s) for s in subscriptions],
        count=len(subscriptions),
    )


@router.patch(
    "/webhooks/{subscription_id}",
    response_model=SubscriptionResponse,
    dependencies=[AdminAuth],
    tags=["webhooks"],
)
async def update_webhook(
    subscription_id: str,
    request: SubscriptionUpdateRequest,
    service: ServiceDep,
) -> SubscriptionResponse:
    """Enable or disable a subscription."""
    subscription = await service.set_subscription_active(subscription_id, request.is_active)
    logger.info(
        "Subscription updated",
        subscription_id=subscription_id,
        is_active=request.is_active,
    )
    return SubscriptionResponse.from_subscription(subscription)


@router.delete(
    "/webhooks/{subscription_id}",
    response_model=MessageResponse,
    dependencies=[AdminAuth],
    tags=["webhooks"],
)
async def delete_webhook(subscription_id: str, service: ServiceDep) -> MessageResponse:
    """Delete a subscription.

    Pending jobs for it fail terminally on their next run.
    """
    await service.delete_subscription(subscription_id)
    logger.info("Subscription deleted", subscription_id=subscription_id)
    return MessageResponse(message="Webhook deleted")


@router.get(
    "/deliveries",
    response_model=DeliveryListResponse,
    dependencies=[AdminAuth],
    tags=["deliveries"],
)
async def list_deliveries(
    service: ServiceDep,
    event_id: str | None = None,
    subscription_id: str | None = None,
    delivery_status: Annotated[DeliveryStatus | None, Query(alias="status")] = None,
    limit: Annotated[int, Query(ge=1, le=1000)] = 100,
) -> DeliveryListResponse:
    """List delivery records, newest first."""
    records = await service.list_deliveries(
        event_id=event_id,
        subscription_id=subscription_id,
        status=delivery_status,
        limit=limit,
    )
    return DeliveryListResponse(
        deliveries=[DeliveryRecordResponse.from_record(r) for r in records],
        count=len(records),
    )


@router.post(
    "/deliveries/{delivery_id}/retry",
    response_model=RetryResponse,
    dependencies=[AdminAuth],
    tags=["deliveries"],
)
async def retry_delivery(delivery_id: str, service: ServiceDep) -> RetryResponse:
    """Re-enqueue the delivery behind a record with a fresh attempt budget."""
    job = await service.retry_delivery(delivery_id)
    return RetryResponse(
        job_id=job.id,
        event_id=job.event_id,
        subscription_id=job.subscription_id,
    )


@router.get(
    "/admin/stats",
    response_model=StatsResponse,
    dependencies=[AdminAuth],
    tags=["admin"],
)
async def get_stats(service: ServiceDep) -> StatsResponse:
    """System counters: events, deliveries and pending jobs."""
    stats = await service.get_stats()
    return StatsResponse(**stats.model_dump())


@router.get("/admin/health", response_model=HealthResponse, tags=["admin"])
async def health_check() -> HealthResponse:
    """Check service health.

    Reports store connectivity and whether embedded workers are running.
    """
    service = current_service()
    if service is None:
        return HealthResponse(
            status="unhealthy",
            version=__version__,
            storage_connected=False,
        )

    health = await service.health()
    return HealthResponse(
        status=health["status"],
        version=__version__,
        storage_connected=health["storage"],
        workers_running=health["workers_running"],
    )
