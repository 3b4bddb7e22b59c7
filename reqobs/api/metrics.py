from __future__ import annotations

from fastapi import APIRouter, Request, Response

from reqobs.observability.metrics import HttpMetrics


router = APIRouter(tags=["observability"])


@router.get("/metrics")
async def metrics(request: Request) -> Response:
    http_metrics: HttpMetrics = request.app.state.http_metrics
    body, content_type = http_metrics.render()
    return Response(content=body, media_type=content_type)
