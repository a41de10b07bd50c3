"""Command-line interface for k8sdiag."""
