"""Approval policies.

Each policy looks at one registration request and answers Approve, Deny or
NoOpinion. Neither built-in policy ever denies: a request that does not
qualify is left pending for a human operator.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable

from kubernetes import client

from hub_shared.models import ApprovalDecision, RegistrationRequest, SpokeCluster
from hub_shared.observability import get_logger

from ..clients.kube import KubeClient
from ..errors import PolicyAmbiguity
from .profile import validate_spoke_profile

logger = get_logger(__name__)

RENEWAL_POLICY = "renewal"
BOOTSTRAP_POLICY = "bootstrap"

ClusterLookup = Callable[[str], SpokeCluster | None]


class ApprovalPolicy(ABC):
    """One link of the approval chain."""

    name: str

    @abstractmethod
    async def evaluate(self, request: RegistrationRequest) -> ApprovalDecision:
        """Decide on a pending request.

        Raises:
            TransientIOError: If a lookup needed for the decision failed
        """


class SubjectAccessReviewer:
    """Asks the hub authorizer whether a spoke agent may renew its certificate."""

    group = "register.open-cluster-management.io"
    resource = "managedclusters"
    subresource = "clientcertificates"
    verb = "renew"

    def __init__(self, kube: KubeClient):
        self.kube = kube

    async def can_renew(self, request: RegistrationRequest, cluster_name: str) -> bool:
        review = client.V1SubjectAccessReview(
            spec=client.V1SubjectAccessReviewSpec(
                user=request.requester,
                groups=list(request.groups),
                resource_attributes=client.V1ResourceAttributes(
                    group=self.group,
                    resource=self.resource,
                    subresource=self.subresource,
                    verb=self.verb,
                    name=cluster_name,
                ),
            )
        )
        result = await self.kube.create_subject_access_review(review)
        allowed = bool(result.status and result.status.allowed)
        logger.debug("Renewal access reviewed", user=request.requester, cluster=cluster_name, allowed=allowed)
        return allowed


class RenewalPolicy(ApprovalPolicy):
    """Approves certificate renewals from already registered spokes.

    The requester must be the identity the request asks a certificate for,
    and that identity must belong to an accepted cluster: either one in the
    local cluster cache, or one the hub authorizer still grants renewal to
    (a cluster that was accepted and whose cache entry is gone).
    """

    name = RENEWAL_POLICY

    def __init__(self, cluster_lookup: ClusterLookup, reviewer: SubjectAccessReviewer | None = None):
        self.cluster_lookup = cluster_lookup
        self.reviewer = reviewer

    async def evaluate(self, request: RegistrationRequest) -> ApprovalDecision:
        try:
            cluster_name = validate_spoke_profile(request)
        except PolicyAmbiguity as e:
            return ApprovalDecision.no_opinion(self.name, str(e))

        if request.requester != request.common_name:
            return ApprovalDecision.no_opinion(self.name, "requester is not the certificate subject")

        cluster = self.cluster_lookup(cluster_name)
        if cluster is not None:
            if cluster.is_accepted:
                return ApprovalDecision.approve(
                    self.name, f"renewal for accepted cluster {cluster_name}"
                )
            return ApprovalDecision.no_opinion(self.name, f"cluster {cluster_name} is not accepted")

        if self.reviewer is not None and await self.reviewer.can_renew(request, cluster_name):
            return ApprovalDecision.approve(self.name, f"renewal authorized for cluster {cluster_name}")
        return ApprovalDecision.no_opinion(self.name, f"cluster {cluster_name} is unknown")


class BootstrapPolicy(ApprovalPolicy):
    """Approves first-time registrations from an operator-trusted bootstrap identity."""

    name = BOOTSTRAP_POLICY

    def __init__(self, allow_list: tuple[str, ...]):
        self.allow_list = frozenset(allow_list)

    async def evaluate(self, request: RegistrationRequest) -> ApprovalDecision:
        if request.requester not in self.allow_list:
            return ApprovalDecision.no_opinion(self.name, "requester is not an allowed bootstrap user")
        try:
            cluster_name = validate_spoke_profile(request)
        except PolicyAmbiguity as e:
            return ApprovalDecision.no_opinion(self.name, str(e))
        return ApprovalDecision.approve(
            self.name, f"bootstrap registration by {request.requester} for cluster {cluster_name}"
        )
