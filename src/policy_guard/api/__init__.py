"""Operator HTTP surface for the security engine."""
