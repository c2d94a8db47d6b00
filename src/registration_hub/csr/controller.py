"""Approval chain dispatcher.

Watches registration requests and runs every pending one through an ordered
chain of approval policies. The first definitive answer is written back as
a conditional update; a lost race re-reads the request and tries again a
bounded number of times. Requests with a terminal decision are never
written again.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from hub_shared.models import (
    ApprovalDecision,
    ApprovalOutcome,
    RegistrationRequest,
    SpokeCluster,
)
from hub_shared.observability import get_logger

from ..errors import ConflictError, NotFoundError
from ..options import HubOptions
from ..runtime import Controller, EventHandler, Informer
from ..services.event_recorder import EventRecorder
from .adapters import RequestAdapter
from .policies import ApprovalPolicy, BootstrapPolicy, RenewalPolicy, SubjectAccessReviewer

logger = get_logger(__name__)

CONTROLLER_NAME = "csr-approving-controller"


def build_policy_chain(
    options: HubOptions,
    cluster_informer: Informer[SpokeCluster],
    reviewer: SubjectAccessReviewer | None,
) -> tuple[ApprovalPolicy, ...]:
    """Resolve the approval chain once at startup.

    Renewal is always first; bootstrap approval follows only when automatic
    approval is enabled.
    """
    chain: list[ApprovalPolicy] = [RenewalPolicy(cluster_informer.get, reviewer)]
    if options.auto_approval_enabled:
        chain.append(BootstrapPolicy(options.bootstrap_allow_list))
    return tuple(chain)


class CSRApprovingController(Controller):
    """Dispatches pending registration requests through the approval chain."""

    def __init__(
        self,
        adapter: RequestAdapter,
        requests: Informer[RegistrationRequest],
        policies: Sequence[ApprovalPolicy],
        recorder: EventRecorder,
        options: HubOptions,
        extra_informers: Sequence[Informer[Any]] = (),
    ):
        super().__init__(
            CONTROLLER_NAME,
            informers=[requests, *extra_informers],
            recorder=recorder,
            workers=options.workers,
            drain_timeout=options.shutdown_drain_seconds,
        )
        self.adapter = adapter
        self.requests = requests
        self.policies = tuple(policies)
        self.retry_attempts = options.conflict_retry_attempts
        requests.add_handler(EventHandler(on_upsert=self._on_upsert, on_delete=self._on_delete))

    def _on_upsert(self, old: RegistrationRequest | None, new: RegistrationRequest) -> None:
        if not new.is_terminal:
            self.queue.add(new.name)

    def _on_delete(self, obj: RegistrationRequest) -> None:
        self.queue.forget(obj.name)

    @property
    def policy_names(self) -> list[str]:
        return [policy.name for policy in self.policies]

    async def evaluate(self, request: RegistrationRequest) -> ApprovalDecision:
        """Run the chain; stop at the first definitive decision."""
        for policy in self.policies:
            decision = await policy.evaluate(request)
            logger.debug(
                "Policy evaluated",
                policy=policy.name,
                outcome=decision.outcome.value,
                reason=decision.reason,
            )
            if decision.is_definitive:
                return decision
        return ApprovalDecision.no_opinion("chain", "no policy decided")

    async def reconcile(self, key: str) -> None:
        request = self.requests.get(key)
        if request is None or request.is_terminal:
            return

        for attempt in range(1, self.retry_attempts + 1):
            decision = await self.evaluate(request)
            if not decision.is_definitive:
                logger.debug("Request left pending", requester=request.requester)
                return

            try:
                updated = await self.adapter.write_decision(request, decision)
            except NotFoundError:
                logger.info("Request removed before the decision was written")
                return
            except ConflictError:
                if attempt == self.retry_attempts:
                    raise
                fresh = await self.adapter.get(key)
                if fresh is None or fresh.is_terminal:
                    logger.info("Request decided or removed concurrently", attempt=attempt)
                    return
                request = fresh
                continue

            if updated is not None:
                self.requests.store(updated)
            if decision.outcome == ApprovalOutcome.APPROVE:
                await self.recorder.csr_approved(request, decision.policy, decision.reason)
            else:
                await self.recorder.csr_denied(request, decision.policy, decision.reason)
            return

    def status(self) -> dict[str, Any]:
        status = super().status()
        status["policies"] = self.policy_names
        status["variant"] = self.adapter.variant.value
        return status
