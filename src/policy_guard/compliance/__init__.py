"""Compliance auditing against the active security policy."""

from .auditor import ComplianceAuditor, compliance_level

__all__ = ["ComplianceAuditor", "compliance_level"]
