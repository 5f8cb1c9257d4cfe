"""Observability endpoints for redemption outcomes and Prometheus metrics."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from codepool_api.api.dependencies.security import require_admin_api_key
from codepool_api.observability.redemptions import get_redemption_store


router = APIRouter(
    prefix="/observability",
    tags=["Observability"],
    dependencies=[Depends(require_admin_api_key)],
)


@router.get("/redemptions", summary="Redemption outcome snapshot")
async def get_redemption_snapshot() -> dict[str, object]:
    return get_redemption_store().snapshot().as_dict()


def _format_metric(name: str, description: str, value: int | float, labels: dict[str, str] | None = None) -> list[str]:
    label_fragment = ""
    if labels:
        formatted = ",".join(f'{key}="{val}"' for key, val in sorted(labels.items()))
        label_fragment = f"{{{formatted}}}"
    return [
        f"# HELP {name} {description}",
        f"# TYPE {name} counter",
        f"{name}{label_fragment} {value}",
    ]


@router.get(
    "/prometheus",
    summary="Prometheus-formatted observability metrics",
    response_class=PlainTextResponse,
)
async def get_prometheus_metrics() -> PlainTextResponse:
    snapshot = get_redemption_store().snapshot()

    lines: list[str] = []
    lines.extend(
        _format_metric(
            "codepool_redemptions_total",
            "Redemption attempts across all categories",
            sum(snapshot.totals.values()),
        )
    )
    for category, outcomes in sorted(snapshot.per_category.items()):
        for outcome, value in sorted(outcomes.items()):
            lines.extend(
                _format_metric(
                    "codepool_redemption_outcomes_total",
                    "Redemption attempts grouped by category and outcome",
                    value,
                    labels={"category": category, "outcome": outcome},
                )
            )

    return PlainTextResponse("\n".join(lines) + "\n")
