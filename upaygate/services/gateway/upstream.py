"""HTTP client for the UPay order API.

One POST per order, no retry. Every failure mode collapses into
`UpstreamRejected` (or its `UpstreamTimeout` subclass).
"""

import json

import httpx
from pydantic import ValidationError

from upaygate.common.errors import UpstreamRejected, UpstreamTimeout
from upaygate.common.logging import logger
from upaygate.common.metrics import upstream_latency_seconds
from upaygate.common.tracing import get_tracer
from upaygate.services.gateway.schemas import OrderCreationRequest, UpstreamOrderResponse

ORDER_PATH = "/api/v1/order"
SUCCESS_CODE = 1

tracer = get_tracer("upaygate.upstream")


class UpstreamClient:
    """Posts signed orders to `<api_base>/api/v1/order`."""

    def __init__(
        self,
        api_base: str,
        timeout_seconds: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
        service_name: str = "upay-gateway",
    ) -> None:
        self.api_base = api_base.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.transport = transport
        self.service_name = service_name

    async def create_order(self, order: OrderCreationRequest, timeout: float | None = None) -> str:
        """Submit `order` and return the processor-assigned order id."""

        if order.sign is None:
            raise ValueError("order must be signed before submission")
        budget = self.timeout_seconds if timeout is None else min(timeout, self.timeout_seconds)
        if budget <= 0:
            raise UpstreamTimeout("request deadline exhausted before upstream call")
        try:
            body = json.dumps(order.wire_payload(), allow_nan=False).encode("utf-8")
        except (TypeError, ValueError) as exc:
            raise UpstreamRejected(f"order payload is not valid JSON: {exc}") from exc

        with tracer.start_as_current_span("upay.create_order") as span:
            span.set_attribute("upay.oid", order.oid)
            with upstream_latency_seconds.labels(service=self.service_name).time():
                try:
                    async with httpx.AsyncClient(timeout=budget, transport=self.transport) as client:
                        resp = await client.post(
                            f"{self.api_base}{ORDER_PATH}",
                            content=body,
                            headers={"Content-Type": "application/json"},
                        )
                except httpx.TimeoutException as exc:
                    raise UpstreamTimeout(f"upstream timed out after {budget:.2f}s") from exc
                except httpx.HTTPError as exc:
                    raise UpstreamRejected(f"upstream transport error: {exc}") from exc

            try:
                result = UpstreamOrderResponse.model_validate_json(resp.content)
            except ValidationError as exc:
                logger.error("upstream returned unparseable body status=%s", resp.status_code)
                raise UpstreamRejected(f"unparseable upstream response (HTTP {resp.status_code})") from exc

            span.set_attribute("upay.code", result.code)
            logger.info("upstream order response code=%s message=%s", result.code, result.message)
            if result.code != SUCCESS_CODE:
                raise UpstreamRejected(result.message or "upstream rejected order", code=result.code)
            if result.data is None or not result.data.id:
                raise UpstreamRejected("upstream success without order id", code=result.code)
            return result.data.id
