"""Adaptive practice and assessment engine."""
