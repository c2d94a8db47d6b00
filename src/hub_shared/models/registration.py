"""Registration request domain models."""

from datetime import datetime
from enum import Enum

from pydantic import Field

from .base import HubBaseModel, SnapshotModel

# Label the spoke agent puts on its registration request
CLUSTER_NAME_LABEL = "open-cluster-management.io/cluster-name"


class SchemaVariant(str, Enum):
    """Registration request API served by the hub."""

    CURRENT = "v1"
    LEGACY = "v1beta1"


class DecisionState(str, Enum):
    """Approval state of a registration request. Terminal once not PENDING."""

    PENDING = "Pending"
    APPROVED = "Approved"
    DENIED = "Denied"


class KeyUsage(str, Enum):
    """Key usages a certificate request may ask for."""

    SIGNING = "signing"
    DIGITAL_SIGNATURE = "digital signature"
    CONTENT_COMMITMENT = "content commitment"
    KEY_ENCIPHERMENT = "key encipherment"
    KEY_AGREEMENT = "key agreement"
    DATA_ENCIPHERMENT = "data encipherment"
    CERT_SIGN = "cert sign"
    CRL_SIGN = "crl sign"
    ENCIPHER_ONLY = "encipher only"
    DECIPHER_ONLY = "decipher only"
    ANY = "any"
    SERVER_AUTH = "server auth"
    CLIENT_AUTH = "client auth"
    CODE_SIGNING = "code signing"
    EMAIL_PROTECTION = "email protection"
    SMIME = "s/mime"
    IPSEC_END_SYSTEM = "ipsec end system"
    IPSEC_TUNNEL = "ipsec tunnel"
    IPSEC_USER = "ipsec user"
    TIMESTAMPING = "timestamping"
    OCSP_SIGNING = "ocsp signing"
    MICROSOFT_SGC = "microsoft sgc"
    NETSCAPE_SGC = "netscape sgc"


class RegistrationRequest(SnapshotModel):
    """A spoke's certificate signing request, decoded from either schema.

    `organizations` and `common_name` come from the PEM subject; the raw
    payload itself is carried untouched in `request`.
    """

    name: str
    variant: SchemaVariant
    requester: str = Field(description="Authenticated user that created the request")
    groups: tuple[str, ...] = ()
    usages: frozenset[KeyUsage] = frozenset()
    organizations: tuple[str, ...] = ()
    common_name: str = ""
    cluster_name: str | None = None
    signer_name: str | None = None
    request: bytes = b""
    labels: dict[str, str] = Field(default_factory=dict)
    state: DecisionState = DecisionState.PENDING
    resource_version: str | None = None
    created_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.state != DecisionState.PENDING


class ApprovalOutcome(str, Enum):
    """Result of one policy evaluation."""

    APPROVE = "Approve"
    DENY = "Deny"
    NO_OPINION = "NoOpinion"


class ApprovalDecision(HubBaseModel):
    """Transient verdict of a policy; only the terminal write is persisted."""

    outcome: ApprovalOutcome
    reason: str = ""
    policy: str = ""

    @property
    def is_definitive(self) -> bool:
        return self.outcome != ApprovalOutcome.NO_OPINION

    @classmethod
    def approve(cls, policy: str, reason: str) -> "ApprovalDecision":
        return cls(outcome=ApprovalOutcome.APPROVE, policy=policy, reason=reason)

    @classmethod
    def deny(cls, policy: str, reason: str) -> "ApprovalDecision":
        return cls(outcome=ApprovalOutcome.DENY, policy=policy, reason=reason)

    @classmethod
    def no_opinion(cls, policy: str, reason: str = "") -> "ApprovalDecision":
        return cls(outcome=ApprovalOutcome.NO_OPINION, policy=policy, reason=reason)
