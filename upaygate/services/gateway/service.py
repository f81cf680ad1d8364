"""Order gateway orchestration.

Wraps the rate limiter and canonical signer around the two public operations:
creating an order with the processor and checking a payment notification.
Nothing is persisted here besides the limiter's counters.
"""

import time
from collections.abc import Callable, Mapping
from uuid import uuid4

from upaygate.common.config import GatewaySettings
from upaygate.common.errors import MalformedNotification, MissingIdentity, RateLimited
from upaygate.common.logging import logger, order_id_ctx
from upaygate.common.ratelimit import RateLimiter
from upaygate.common.signing import sign, strip_signature, verify
from upaygate.services.gateway.schemas import NotificationMessage, OrderCreationRequest
from upaygate.services.gateway.upstream import UpstreamClient


class OrderGateway:
    """Owns create-order and notification handling for one process."""

    def __init__(
        self,
        cfg: GatewaySettings,
        limiter: RateLimiter,
        upstream: UpstreamClient,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.cfg = cfg
        self.limiter = limiter
        self.upstream = upstream
        self.clock = clock

    def identity_from_headers(self, headers: Mapping[str, str]) -> str:
        """Client network identity from the configured header, or MissingIdentity."""

        identity = (headers.get(self.cfg.client_ip_header) or "").strip()
        if not identity:
            raise MissingIdentity(f"missing {self.cfg.client_ip_header} header")
        return identity

    def new_order_id(self) -> str:
        return f"{self.cfg.order_id_prefix}{uuid4().hex[:12]}"

    def build_order(self, oid: str, uid: str, amount: float) -> OrderCreationRequest:
        """Assemble and sign an order request stamped with the current time."""

        now_ms = int(self.clock() * 1000)
        order = OrderCreationRequest(
            oid=oid,
            uid=uid,
            amount=amount,
            memo=self.cfg.order_memo,
            expired_at=now_ms + self.cfg.order_ttl_seconds * 1000,
            timestamp=now_ms,
            nonce=uuid4().hex,
            mch_id=self.cfg.upay_mch_id,
            notify_url=self.cfg.upay_notify,
            redirect_url=self.cfg.upay_redirect,
        )
        order.sign = sign(order.signable_fields(), self.cfg.upay_payment_key)
        return order

    async def create_order(
        self,
        identity: str | None,
        oid: str,
        uid: str,
        amount: float,
        deadline: float | None = None,
    ) -> str:
        """Create an order upstream and return the payment page URL.

        `deadline` is an absolute `time.monotonic()` value inherited from the
        inbound request; the upstream call gets whatever budget remains.
        Raises MissingIdentity, RateLimited or UpstreamRejected.
        """

        if not identity:
            raise MissingIdentity("no client identity")
        if not await self.limiter.allow(identity):
            logger.warning("create_order rate limited identity=%s", identity)
            raise RateLimited(identity)

        order_id_ctx.set(oid)
        order = self.build_order(oid, uid, amount)
        logger.info("submitting order oid=%s uid=%s amount=%s", oid, uid, amount)

        timeout = None if deadline is None else deadline - time.monotonic()
        upstream_id = await self.upstream.create_order(order, timeout=timeout)
        return f"{self.cfg.upay_ui}{upstream_id}"

    def handle_notification(self, message: NotificationMessage) -> bool:
        """True when the notification's signature matches its other fields."""

        fields, claimed = strip_signature(message.received_fields())
        try:
            return verify(fields, claimed, self.cfg.upay_payment_key)
        except TypeError as exc:
            raise MalformedNotification(str(exc)) from exc
