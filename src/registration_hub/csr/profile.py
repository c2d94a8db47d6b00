"""Spoke client-certificate profile.

A registration request is only ever considered by an approval policy when
its claims describe exactly one spoke client certificate:

- the cluster name label is set and is a valid cluster name
- the signer (when the schema carries one) is the API server client signer
- the subject organizations are the cluster's own group, optionally joined
  by the shared managed-clusters group, and nothing else
- the subject common name is `system:open-cluster-management:<cluster>:<agent>`
- the usages ask for client auth and nothing outside the client key usages
"""

import re

from hub_shared.models import KeyUsage, RegistrationRequest

from ..errors import PolicyAmbiguity

SUBJECT_PREFIX = "system:open-cluster-management:"
MANAGED_CLUSTERS_GROUP = "system:open-cluster-management:managed-clusters"
KUBE_APISERVER_CLIENT_SIGNER = "kubernetes.io/kube-apiserver-client"

ALLOWED_USAGES = frozenset(
    {KeyUsage.DIGITAL_SIGNATURE, KeyUsage.KEY_ENCIPHERMENT, KeyUsage.CLIENT_AUTH}
)

_CLUSTER_NAME_RE = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")
_MAX_CLUSTER_NAME = 63


def cluster_group(cluster_name: str) -> str:
    return f"{SUBJECT_PREFIX}{cluster_name}"


def validate_spoke_profile(request: RegistrationRequest) -> str:
    """Check a request against the spoke client-certificate profile.

    Args:
        request: Decoded registration request

    Returns:
        The cluster name the request is for

    Raises:
        PolicyAmbiguity: If any claim falls outside the profile
    """
    cluster_name = request.cluster_name
    if not cluster_name:
        raise PolicyAmbiguity("cluster name label is missing")
    if len(cluster_name) > _MAX_CLUSTER_NAME or not _CLUSTER_NAME_RE.match(cluster_name):
        raise PolicyAmbiguity(f"cluster name {cluster_name!r} is not a valid name")

    if request.signer_name is not None and request.signer_name != KUBE_APISERVER_CLIENT_SIGNER:
        raise PolicyAmbiguity(f"unexpected signer {request.signer_name!r}")

    own_group = cluster_group(cluster_name)
    organizations = set(request.organizations)
    if own_group not in organizations:
        raise PolicyAmbiguity(f"organizations do not include {own_group!r}")
    extra = organizations - {own_group, MANAGED_CLUSTERS_GROUP}
    if extra:
        raise PolicyAmbiguity(f"unexpected organizations {sorted(extra)}")

    agent = request.common_name.removeprefix(f"{own_group}:")
    if agent == request.common_name or not agent:
        raise PolicyAmbiguity(f"common name {request.common_name!r} does not name an agent of {cluster_name!r}")

    if KeyUsage.CLIENT_AUTH not in request.usages:
        raise PolicyAmbiguity("client auth usage is missing")
    disallowed = request.usages - ALLOWED_USAGES
    if disallowed:
        raise PolicyAmbiguity(f"unexpected usages {sorted(u.value for u in disallowed)}")

    return cluster_name
