"""
Natours API — Checkout Webhook Route
=====================================

What:  POST /webhook-checkout, delegated to the payment webhook collaborator.
How:   The raw body stage has already captured the exact bytes received in
       ``ctx.raw_body``; the handler gets them unparsed so it can verify the
       provider's signature over them. Signature checks and booking creation
       belong to the handler.

Handler contract:
    async def handler(request: Request, payload: bytes) -> Any
        Return a Response to send it as-is, anything else JSON-serializable
        to send that, or None for ``{"received": true}``. Raise an AppError
        (e.g. BadRequestError on a bad signature) to fail.
"""

from typing import Any, Awaitable, Callable

from fastapi import APIRouter, Request
from starlette.responses import Response

from natours.context import get_raw_body
from natours.exceptions import NotConfiguredError, UnsupportedMediaTypeError
from natours.schemas.common import ErrorResponse, WebhookAck

WebhookHandler = Callable[[Request, bytes], Awaitable[Any]]


async def webhook_not_configured(request: Request, payload: bytes) -> Any:
    raise NotConfiguredError("Checkout webhook is not configured on this server")


def build_webhook_router(handler: WebhookHandler, path: str = "/webhook-checkout") -> APIRouter:
    router = APIRouter(tags=["Webhooks"])

    @router.post(
        path,
        response_model=None,
        summary="Payment provider checkout webhook",
        responses={
            413: {"model": ErrorResponse},
            415: {"model": ErrorResponse},
            501: {"model": ErrorResponse},
        },
    )
    async def webhook_checkout(request: Request) -> Any:
        payload = get_raw_body(request)
        if payload is None:
            raise UnsupportedMediaTypeError("Webhook payload must be sent as application/json")

        result = await handler(request, payload)
        if isinstance(result, Response):
            return result
        if result is None:
            return WebhookAck()
        return result

    return router
