"""Core graph model, merge engine and fetch adapter."""
