from .operator_config import KubernetesConfig, OperatorConfig, build_config, load_config, load_raw_config

__all__ = [
    "KubernetesConfig",
    "OperatorConfig",
    "build_config",
    "load_config",
    "load_raw_config",
]
