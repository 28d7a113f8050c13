"""xportal: Crossplane claim tracing for Kubernetes clusters."""

__version__ = "0.1.3"
