"""Kubernetes control-plane access."""
