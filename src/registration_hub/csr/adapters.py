"""Registration request schema adapters.

The hub serves certificate signing requests under either the current
(`certificates.k8s.io/v1`) or the legacy (`certificates.k8s.io/v1beta1`)
API. Each adapter decodes its schema into a `RegistrationRequest` and
writes approval decisions back in that schema, so the approval chain never
sees which one is in use.
"""

from __future__ import annotations

import base64
import binascii
from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from cryptography import x509
from cryptography.x509.oid import NameOID

from hub_shared.models import (
    CLUSTER_NAME_LABEL,
    ApprovalDecision,
    ApprovalOutcome,
    DecisionState,
    KeyUsage,
    RegistrationRequest,
    SchemaVariant,
)
from hub_shared.observability import get_logger

from ..clients.kube import KubeClient, format_timestamp, parse_timestamp
from ..errors import ConflictError, NotFoundError

logger = get_logger(__name__)

# Reason written on every condition this hub adds
APPROVAL_REASON = "AutoApprovedByHubCSRApprovingController"
DENIAL_REASON = "DeniedByHubCSRApprovingController"


def decode_subject(pem: bytes) -> tuple[tuple[str, ...], str]:
    """Extract (organizations, common name) from a PEM certificate request.

    An unparsable payload yields empty claims, which no profile accepts.
    """
    try:
        csr = x509.load_pem_x509_csr(pem)
    except ValueError as e:
        logger.debug("Unparsable certificate request", error=str(e))
        return (), ""
    organizations = tuple(
        str(attr.value) for attr in csr.subject.get_attributes_for_oid(NameOID.ORGANIZATION_NAME)
    )
    common_names = csr.subject.get_attributes_for_oid(NameOID.COMMON_NAME)
    common_name = str(common_names[0].value) if common_names else ""
    return organizations, common_name


class RequestAdapter(ABC):
    """Reads and writes registration requests in one API schema."""

    variant: SchemaVariant
    collection_path: str

    def __init__(self, kube: KubeClient):
        self.kube = kube

    # =========================================================================
    # Schema-specific hooks
    # =========================================================================

    @abstractmethod
    def signer_name(self, spec: dict[str, Any]) -> str | None:
        """Signer requested by the object, None when the schema has none."""

    @abstractmethod
    def condition_status(self, condition: dict[str, Any]) -> bool:
        """Whether a status condition is in effect."""

    @abstractmethod
    def build_condition(self, decision: ApprovalDecision, now: datetime) -> dict[str, Any]:
        """Status condition recording a terminal decision."""

    # =========================================================================
    # Decoding
    # =========================================================================

    def decode(self, raw: dict[str, Any]) -> RegistrationRequest | None:
        """Decode a raw API object.

        Returns None for objects that cannot be represented; such requests
        are never evaluated.
        """
        metadata = raw.get("metadata") or {}
        spec = raw.get("spec") or {}
        name = metadata.get("name")
        if not name:
            return None

        try:
            usages = frozenset(KeyUsage(usage) for usage in spec.get("usages") or [])
        except ValueError as e:
            logger.warning("Skipping request with unknown usage", request=name, error=str(e))
            return None

        try:
            payload = base64.b64decode(spec.get("request") or "", validate=True)
        except (binascii.Error, ValueError):
            logger.warning("Skipping request with malformed payload", request=name)
            return None

        organizations, common_name = decode_subject(payload)
        labels = metadata.get("labels") or {}

        return RegistrationRequest(
            name=name,
            variant=self.variant,
            requester=spec.get("username") or "",
            groups=tuple(spec.get("groups") or ()),
            usages=usages,
            organizations=organizations,
            common_name=common_name,
            cluster_name=labels.get(CLUSTER_NAME_LABEL) or None,
            signer_name=self.signer_name(spec),
            request=payload,
            labels=labels,
            state=self.decision_state(raw),
            resource_version=metadata.get("resourceVersion"),
            created_at=parse_timestamp(metadata.get("creationTimestamp")),
        )

    def decision_state(self, raw: dict[str, Any]) -> DecisionState:
        status = raw.get("status") or {}
        state = DecisionState.PENDING
        for condition in status.get("conditions") or []:
            if not self.condition_status(condition):
                continue
            kind = condition.get("type")
            if kind in ("Denied", "Failed"):
                return DecisionState.DENIED
            if kind == "Approved":
                state = DecisionState.APPROVED
        if status.get("certificate"):
            state = DecisionState.APPROVED
        return state

    # =========================================================================
    # API access
    # =========================================================================

    def object_path(self, name: str) -> str:
        return f"{self.collection_path}/{name}"

    def list_function(self) -> Callable[..., Any]:
        return self.kube.list_function(self.collection_path)

    async def get(self, name: str) -> RegistrationRequest | None:
        """Read the current version of a request, None if it is gone."""
        try:
            raw = await self.kube.get(self.object_path(name))
        except NotFoundError:
            return None
        return self.decode(raw)

    async def write_decision(
        self,
        request: RegistrationRequest,
        decision: ApprovalDecision,
        now: datetime | None = None,
    ) -> RegistrationRequest | None:
        """Persist a terminal decision through the approval subresource.

        The write is conditional on `request.resource_version`. A request
        that changed or became terminal since it was observed raises
        ConflictError without writing.
        """
        raw = await self.kube.get(self.object_path(request.name))
        observed = (raw.get("metadata") or {}).get("resourceVersion")
        if request.resource_version and observed != request.resource_version:
            raise ConflictError(
                f"request {request.name!r} changed: {request.resource_version} -> {observed}"
            )
        if self.decision_state(raw) != DecisionState.PENDING:
            raise ConflictError(f"request {request.name!r} already has a terminal decision")

        status = raw["status"] = dict(raw.get("status") or {})
        conditions = list(status.get("conditions") or [])
        conditions.append(self.build_condition(decision, now or datetime.now(timezone.utc)))
        status["conditions"] = conditions

        updated = await self.kube.put(f"{self.object_path(request.name)}/approval", raw)
        logger.info(
            "Decision written",
            request=request.name,
            outcome=decision.outcome.value,
            variant=self.variant.value,
        )
        return self.decode(updated)


class CurrentSchemaAdapter(RequestAdapter):
    """`certificates.k8s.io/v1` requests."""

    variant = SchemaVariant.CURRENT
    collection_path = "/apis/certificates.k8s.io/v1/certificatesigningrequests"

    def signer_name(self, spec: dict[str, Any]) -> str | None:
        # Required in v1; an empty value never matches the client signer
        return spec.get("signerName") or ""

    def condition_status(self, condition: dict[str, Any]) -> bool:
        return condition.get("status") == "True"

    def build_condition(self, decision: ApprovalDecision, now: datetime) -> dict[str, Any]:
        approved = decision.outcome == ApprovalOutcome.APPROVE
        stamp = format_timestamp(now)
        return {
            "type": "Approved" if approved else "Denied",
            "status": "True",
            "reason": APPROVAL_REASON if approved else DENIAL_REASON,
            "message": decision.reason,
            "lastUpdateTime": stamp,
            "lastTransitionTime": stamp,
        }


class LegacySchemaAdapter(RequestAdapter):
    """`certificates.k8s.io/v1beta1` requests, served by older hubs."""

    variant = SchemaVariant.LEGACY
    collection_path = "/apis/certificates.k8s.io/v1beta1/certificatesigningrequests"

    def signer_name(self, spec: dict[str, Any]) -> str | None:
        return spec.get("signerName")

    def condition_status(self, condition: dict[str, Any]) -> bool:
        # Older servers omit status; it defaults to True
        return condition.get("status", "True") == "True"

    def build_condition(self, decision: ApprovalDecision, now: datetime) -> dict[str, Any]:
        approved = decision.outcome == ApprovalOutcome.APPROVE
        return {
            "type": "Approved" if approved else "Denied",
            "status": "True",
            "reason": APPROVAL_REASON if approved else DENIAL_REASON,
            "message": decision.reason,
            "lastUpdateTime": format_timestamp(now),
        }


ADAPTERS: dict[SchemaVariant, type[RequestAdapter]] = {
    SchemaVariant.CURRENT: CurrentSchemaAdapter,
    SchemaVariant.LEGACY: LegacySchemaAdapter,
}
