"""Structured logging and Prometheus metrics for xportal."""
