"""SLO specification models, the SLI plugin contract, and real and fake clients for PrometheusServiceLevel resources."""

__version__ = "0.1.0"

__all__ = [
    "client",
    "fake",
    "k8s_register",
    "k8s_types",
    "prometheus_spec",
    "sli_plugin",
]