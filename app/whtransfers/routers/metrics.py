from fastapi import APIRouter, Response

from app.whtransfers.core.metrics import metrics

router = APIRouter()


@router.get("/ops/metrics", include_in_schema=False)
def scrape_metrics():
    """Prometheus scrape target for the saga counters and request histograms."""
    snapshot = metrics.render()
    return Response(
        content=snapshot.content,
        media_type=snapshot.content_type,
        headers={"Cache-Control": "no-store"},
    )
