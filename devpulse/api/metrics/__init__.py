"""Metrics query resources."""
