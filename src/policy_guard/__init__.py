# PolicyGuard - Security Compliance Monitoring Engine
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""PolicyGuard: security compliance auditing and monitoring engine."""

from .context import SecurityContext

__version__ = "1.0.0"

__all__ = ["SecurityContext", "__version__"]
