"""Developer workflow models."""

from typing import List, Optional

from pydantic import BaseModel, field_validator

DEFAULT_INTERCEPT_PORT = 8080
DEFAULT_NAMESPACE = "default"


class ServicePort(BaseModel):
    name: str
    port: int
    target_port: str = ""
    protocol: str = "TCP"


class ServiceInfo(BaseModel):
    """A Kubernetes Service as seen by ``kubectl get service -o json``."""

    name: str
    namespace: str
    type: str = ""
    ports: List[ServicePort] = []


class InterceptFlags(BaseModel):
    """Flags accepted by ``openframe dev intercept``."""

    port: int = DEFAULT_INTERCEPT_PORT
    namespace: str = DEFAULT_NAMESPACE
    mount: Optional[str] = None
    env_file: Optional[str] = None
    global_intercept: bool = False
    headers: List[str] = []
    replace: bool = False
    remote_port_name: Optional[str] = None

    @field_validator("namespace")
    @classmethod
    def _default_namespace(cls, value: str) -> str:
        return value or DEFAULT_NAMESPACE


class ScaffoldFlags(BaseModel):
    """Flags accepted by ``openframe dev scaffold``."""

    namespace: Optional[str] = None
    skip_bootstrap: bool = False
    helm_values_file: Optional[str] = None


class SkaffoldService(BaseModel):
    """A directory containing a skaffold.yaml."""

    name: str
    directory: str
    config_file: str
