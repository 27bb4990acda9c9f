"""Health check controller: 200 when healthy, 503 with the report otherwise."""

from __future__ import annotations

from litestar import Controller, get
from litestar.response import Response

from watchtower.resources.health import HealthResource


class HealthController(Controller):
    """HTTP adapter for health checks."""

    path = "/api"

    @get("/health")
    async def health(self, health_resource: HealthResource) -> Response[dict[str, object]]:
        """Probe used by process supervisors and load balancers."""
        report = await health_resource.check()
        status_code = 200 if report["status"] == "ok" else 503
        return Response(content=report, status_code=status_code)
