"""Tests for the hub API client wrapper."""

from unittest.mock import MagicMock, patch

import pytest
import urllib3
from kubernetes import client
from kubernetes.client.rest import ApiException
from kubernetes.config import ConfigException

from hub_shared.config import KubeSettings
from registration_hub.clients import kube as kube_module
from registration_hub.clients.kube import KubeClient, translate_api_error
from registration_hub.csr.selector import probe_csr_versions
from registration_hub.errors import ConflictError, DiscoveryError, NotFoundError, TransientIOError


@pytest.fixture
def api_client():
    return MagicMock()


@pytest.fixture
def kube(api_client):
    return KubeClient(KubeSettings(request_timeout_seconds=5), api_client=api_client)


class TestTranslateApiError:
    @pytest.mark.parametrize(
        "status, expected",
        [
            (409, ConflictError),
            (404, NotFoundError),
            (500, TransientIOError),
            (429, TransientIOError),
            (403, TransientIOError),
        ],
    )
    def test_status_mapping(self, status, expected):
        assert isinstance(translate_api_error(ApiException(status=status), "GET x"), expected)

    def test_connection_failure(self):
        error = translate_api_error(urllib3.exceptions.MaxRetryError(None, "/"), "GET x")

        assert isinstance(error, TransientIOError)
        assert error.status is None


class TestKubeClient:
    async def test_get_returns_plain_object(self, kube, api_client):
        api_client.call_api.return_value = {"metadata": {"name": "a"}}

        result = await kube.get("/apis/example/v1/things/a")

        assert result == {"metadata": {"name": "a"}}
        kwargs = api_client.call_api.call_args.kwargs
        assert kwargs["response_type"] == "object"
        assert kwargs["_request_timeout"] == 5

    async def test_put_conflict(self, kube, api_client):
        api_client.call_api.side_effect = ApiException(status=409, reason="Conflict")

        with pytest.raises(ConflictError):
            await kube.put("/apis/example/v1/things/a", {"metadata": {"resourceVersion": "1"}})

    async def test_connection_error_is_transient(self, kube, api_client):
        api_client.call_api.side_effect = ConnectionRefusedError("refused")

        with pytest.raises(TransientIOError):
            await kube.get("/apis/example/v1/things")

    def test_list_function_maps_watch_arguments(self, kube, api_client):
        list_objects = kube.list_function("/apis/example/v1/things", fieldSelector="metadata.name=x")

        list_objects(watch=True, resource_version="5", timeout_seconds=30, _preload_content=False)

        args = api_client.call_api.call_args
        assert args.args == ("/apis/example/v1/things", "GET")
        assert dict(args.kwargs["query_params"]) == {
            "fieldSelector": "metadata.name=x",
            "watch": "true",
            "resourceVersion": "5",
            "timeoutSeconds": 30,
        }
        assert args.kwargs["_preload_content"] is False

    async def test_discovery_without_usable_config_is_transient(self):
        kube = KubeClient(KubeSettings(kubeconfig="/nonexistent/kubeconfig"))
        kube_config = kube_module.config
        with (
            patch.object(kube_config, "load_incluster_config", side_effect=ConfigException("no sa")),
            patch.object(kube_config, "load_kube_config", side_effect=ConfigException("no file")),
        ):
            with pytest.raises(TransientIOError):
                await kube.get_api_groups()

            with pytest.raises(DiscoveryError):
                await probe_csr_versions(kube)

    async def test_subject_access_review_runs_in_thread(self, kube, api_client):
        review = client.V1SubjectAccessReview(spec=client.V1SubjectAccessReviewSpec())
        with patch.object(kube_module.client, "AuthorizationV1Api") as authorization_api:
            authorization_api.return_value.create_subject_access_review.return_value = review

            result = await kube.create_subject_access_review(review)

        assert result is review
        authorization_api.assert_called_once_with(api_client)
