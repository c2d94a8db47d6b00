"""Registration request approval."""

from .adapters import ADAPTERS, CurrentSchemaAdapter, LegacySchemaAdapter, RequestAdapter
from .controller import CSRApprovingController, build_policy_chain
from .policies import ApprovalPolicy, BootstrapPolicy, RenewalPolicy, SubjectAccessReviewer
from .profile import validate_spoke_profile
from .selector import choose_schema_variant, probe_csr_versions, select_request_adapter

__all__ = [
    "ADAPTERS",
    "ApprovalPolicy",
    "BootstrapPolicy",
    "CSRApprovingController",
    "CurrentSchemaAdapter",
    "LegacySchemaAdapter",
    "RenewalPolicy",
    "RequestAdapter",
    "SubjectAccessReviewer",
    "build_policy_chain",
    "choose_schema_variant",
    "probe_csr_versions",
    "select_request_adapter",
    "validate_spoke_profile",
]
