"""Resolution of the API server address and credentials.

Sources are tried in order: the explicit ``kubernetes`` configuration, a
kubeconfig file (the configured one or ``$KUBECONFIG``), the in-cluster
service account and finally ``~/.kube/config``.
"""

import base64
import os
import ssl
import tempfile
from pathlib import Path
from typing import Any, Optional

import yaml
from loguru import logger
from pydantic import BaseModel, ConfigDict

from managed_exceptions import InvalidArgumentException
from ipsync.configs import KubernetesConfig

SERVICE_ACCOUNT_DIR = Path("/var/run/secrets/kubernetes.io/serviceaccount")
DEFAULT_KUBECONFIG = Path("~/.kube/config")


class KubernetesCredentials(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    api_server: str
    token: Optional[str] = None
    token_file: Optional[Path] = None
    verify: ssl.SSLContext | bool = True
    source: str

    def bearer_token(self) -> Optional[str]:
        # Projected service account tokens rotate, read them on every call
        if self.token_file is not None:
            return self.token_file.read_text(encoding="utf-8").strip()
        return self.token


def load_credentials(config: KubernetesConfig,
                     environ: Optional[dict[str, str]] = None,
                     service_account_dir: Path = SERVICE_ACCOUNT_DIR) -> KubernetesCredentials:
    environ = dict(os.environ) if environ is None else environ

    if config.api_server:
        return _from_explicit(config)

    kubeconfig: Optional[Path] = config.kubeconfig
    if kubeconfig is None and environ.get("KUBECONFIG"):
        kubeconfig = Path(environ["KUBECONFIG"].split(os.pathsep)[0]).expanduser()
    if kubeconfig is not None:
        return _from_kubeconfig(kubeconfig, config)

    if environ.get("KUBERNETES_SERVICE_HOST") and (service_account_dir / "token").exists():
        return _from_service_account(environ, service_account_dir, config)

    default_kubeconfig: Path = DEFAULT_KUBECONFIG.expanduser()
    if default_kubeconfig.exists():
        return _from_kubeconfig(default_kubeconfig, config)

    raise InvalidArgumentException(
        "No Kubernetes credentials found: set an API server, a kubeconfig, or run inside a cluster"
    )


def _from_explicit(config: KubernetesConfig) -> KubernetesCredentials:
    verify: ssl.SSLContext | bool = True
    if config.insecure_skip_tls_verify:
        verify = False
    elif config.ca_file is not None:
        verify = ssl.create_default_context(cafile=str(config.ca_file))
    return KubernetesCredentials(
        api_server=config.api_server.rstrip("/"),
        token=config.token,
        token_file=config.token_file,
        verify=verify,
        source="config"
    )


def _from_service_account(environ: dict[str, str], service_account_dir: Path, config: KubernetesConfig) -> KubernetesCredentials:
    host: str = environ["KUBERNETES_SERVICE_HOST"]
    port: str = environ.get("KUBERNETES_SERVICE_PORT", "443")
    if ":" in host:
        host = f"[{host}]"
    ca_file: Path = service_account_dir / "ca.crt"
    verify: ssl.SSLContext | bool = True
    if config.insecure_skip_tls_verify:
        verify = False
    elif ca_file.exists():
        verify = ssl.create_default_context(cafile=str(ca_file))
    return KubernetesCredentials(
        api_server=f"https://{host}:{port}",
        token_file=service_account_dir / "token",
        verify=verify,
        source="in-cluster"
    )


def _from_kubeconfig(path: Path, config: KubernetesConfig) -> KubernetesCredentials:
    if not path.exists():
        raise InvalidArgumentException(f"Kubeconfig not found at: {path}", diagnostic_details={"path": str(path)})
    document: dict[str, Any] = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    base_dir: Path = path.parent

    context_name: Optional[str] = config.context or document.get("current-context")
    if not context_name:
        raise InvalidArgumentException(f"Kubeconfig {path} has no current-context")
    context: dict[str, Any] = _named(document, "contexts", "context", context_name, path)
    cluster: dict[str, Any] = _named(document, "clusters", "cluster", context.get("cluster"), path)
    user: dict[str, Any] = _named(document, "users", "user", context.get("user"), path) if context.get("user") else {}

    server: Optional[str] = cluster.get("server")
    if not server:
        raise InvalidArgumentException(f"Cluster of context {context_name} in {path} has no server")

    verify: ssl.SSLContext | bool = True
    if config.insecure_skip_tls_verify or cluster.get("insecure-skip-tls-verify"):
        verify = False
    else:
        verify = _ssl_context(cluster, user, base_dir)

    token: Optional[str] = user.get("token")
    token_file: Optional[Path] = None
    if user.get("tokenFile"):
        token_file = _resolve(base_dir, user["tokenFile"])

    logger.info("Using context {} of kubeconfig {}", context_name, path)
    return KubernetesCredentials(
        api_server=server.rstrip("/"),
        token=token,
        token_file=token_file,
        verify=verify,
        source=f"kubeconfig:{context_name}"
    )


def _named(document: dict[str, Any], section: str, key: str, name: Optional[str], path: Path) -> dict[str, Any]:
    for entry in document.get(section) or []:
        if entry.get("name") == name:
            return entry.get(key) or {}
    raise InvalidArgumentException(
        f"Kubeconfig {path} has no {key} named '{name}'",
        diagnostic_details={"path": str(path), key: str(name)}
    )


def _ssl_context(cluster: dict[str, Any], user: dict[str, Any], base_dir: Path) -> ssl.SSLContext | bool:
    has_ca: bool = bool(cluster.get("certificate-authority") or cluster.get("certificate-authority-data"))
    has_client_cert: bool = bool(user.get("client-certificate") or user.get("client-certificate-data"))
    if not has_ca and not has_client_cert:
        return True

    context: ssl.SSLContext = ssl.create_default_context()
    if cluster.get("certificate-authority"):
        context.load_verify_locations(cafile=str(_resolve(base_dir, cluster["certificate-authority"])))
    elif cluster.get("certificate-authority-data"):
        context.load_verify_locations(cadata=base64.b64decode(cluster["certificate-authority-data"]).decode("utf-8"))

    if has_client_cert:
        temporary: list[Path] = []
        try:
            cert_file: Path = _material(user, "client-certificate", base_dir, temporary)
            key_file: Path = _material(user, "client-key", base_dir, temporary)
            context.load_cert_chain(certfile=str(cert_file), keyfile=str(key_file))
        except (ssl.SSLError, OSError) as e:
            raise InvalidArgumentException(f"Failed to load the kubeconfig client certificate: {e}") from e
        finally:
            for file in temporary:
                file.unlink(missing_ok=True)
    return context


def _material(user: dict[str, Any], field: str, base_dir: Path, temporary: list[Path]) -> Path:
    if user.get(field):
        return _resolve(base_dir, user[field])
    data: Optional[str] = user.get(f"{field}-data")
    if not data:
        raise InvalidArgumentException(f"Kubeconfig user is missing {field}")
    # ssl only loads certificate chains from files
    fd, name = tempfile.mkstemp(prefix="ipsync-", suffix=".pem")
    temporary.append(Path(name))
    with os.fdopen(fd, "wb") as file:
        file.write(base64.b64decode(data))
    os.chmod(name, 0o600)
    return Path(name)


def _resolve(base_dir: Path, value: str) -> Path:
    path = Path(value).expanduser()
    return path if path.is_absolute() else base_dir / path
