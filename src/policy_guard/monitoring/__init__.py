"""Alerting, incident escalation and the periodic monitoring scheduler."""
