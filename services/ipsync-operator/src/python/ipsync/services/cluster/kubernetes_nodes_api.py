import httpx
import json
from http import HTTPStatus
from typing import Optional, TypeVar
from pydantic import BaseModel, Field, ValidationError
from managed_exceptions import (
    ConflictException,
    ItemNotFoundException,
    MalformedResponseException,
    ManagedException,
    UnauthenticatedException,
    UnauthorizedException,
    UpstreamException,
)
from client_handler import ClientHandler
from ipsync.configs import KubernetesConfig
from ipsync.models import NodeAddress
from .cluster_nodes_api import ClusterNodesApi
from .kubernetes_credentials import KubernetesCredentials, load_credentials

TModel = TypeVar("TModel", bound=BaseModel)

MERGE_PATCH_CONTENT_TYPE = "application/merge-patch+json"


class VersionInfo(BaseModel):
    git_version: str = Field(alias="gitVersion")


class NodeStatus(BaseModel):
    addresses: list[NodeAddress] = Field(default_factory=list)


class Node(BaseModel):
    status: NodeStatus = Field(default_factory=NodeStatus)


class Status(BaseModel):
    message: str = ""
    reason: str = ""


class KubernetesNodesApi(ClientHandler, ClusterNodesApi):
    """Node address access through the Kubernetes REST API."""

    def __init__(self,
                 credentials: KubernetesCredentials,
                 config: Optional[KubernetesConfig] = None,
                 transport: Optional[httpx.BaseTransport] = None):
        config = config or KubernetesConfig()
        super().__init__(
            host=credentials.api_server,
            default_timeout=httpx.Timeout(config.request_timeout_seconds, connect=config.connect_timeout_seconds),
            headers={"Accept": "application/json"},
            verify=credentials.verify,
            transport=transport
        )
        self.__credentials = credentials

    @staticmethod
    def from_config(config: KubernetesConfig) -> "KubernetesNodesApi":
        return KubernetesNodesApi(load_credentials(config), config)

    def verify_connection(self) -> str:
        response: httpx.Response = self.invoke("GET", "/version", headers=self.__auth_headers())
        return self.__parse(VersionInfo, response).git_version

    def get_node_addresses(self, node_name: str) -> list[NodeAddress]:
        try:
            response: httpx.Response = self.invoke("GET", f"/api/v1/nodes/{node_name}", headers=self.__auth_headers())
        except ItemNotFoundException as e:
            raise ItemNotFoundException(f"Node {node_name} not found", diagnostic_details={"node": node_name}) from e
        return self.__parse(Node, response).status.addresses

    def patch_node_addresses(self, node_name: str, addresses: list[NodeAddress], dry_run: bool) -> list[NodeAddress]:
        # Merge patch replaces lists as a whole
        body: dict = {"status": {"addresses": [address.model_dump() for address in addresses]}}
        headers: dict[str, str] = self.__auth_headers()
        headers["Content-Type"] = MERGE_PATCH_CONTENT_TYPE
        try:
            response: httpx.Response = self.invoke(
                "PATCH",
                f"/api/v1/nodes/{node_name}/status",
                content=json.dumps(body).encode("utf-8"),
                params={"dryRun": "All"} if dry_run else None,
                headers=headers
            )
        except ItemNotFoundException as e:
            raise ItemNotFoundException(f"Node {node_name} not found", diagnostic_details={"node": node_name}) from e
        return self.__parse(Node, response).status.addresses

    def _on_error_response(self, response: httpx.Response) -> ManagedException:
        try:
            status: Status = Status.model_validate_json(response.content)
        except ValidationError:
            status = Status(message=response.text)
        message: str = status.message or f"Kubernetes API answered with {response.status_code}"
        details: dict[str, str] = {"reason": status.reason} if status.reason else {}

        match response.status_code:
            case HTTPStatus.NOT_FOUND:
                return ItemNotFoundException(message, diagnostic_details=details)
            case HTTPStatus.UNAUTHORIZED:
                return UnauthenticatedException(message, diagnostic_details=details)
            case HTTPStatus.FORBIDDEN:
                return UnauthorizedException(message, diagnostic_details=details)
            case HTTPStatus.CONFLICT:
                return ConflictException(message, diagnostic_details=details)
            case _:
                return UpstreamException(
                    http_status=HTTPStatus(response.status_code),
                    message=message,
                    diagnostic_details=details
                )

    def __auth_headers(self) -> dict[str, str]:
        token: Optional[str] = self.__credentials.bearer_token()
        return {"Authorization": f"Bearer {token}"} if token else {}

    @staticmethod
    def __parse(model_class: type[TModel], response: httpx.Response) -> TModel:
        try:
            return model_class.model_validate_json(response.content)
        except ValidationError as e:
            raise MalformedResponseException(
                f"Cannot decode Kubernetes API response as {model_class.__name__}",
                diagnostic_details={"url": str(response.request.url)}
            ) from e
