"""
Shared module - Model bases used across domains.
"""

from pleeno.modules.shared.models import BaseModel, TenantMixin, pg_enum

__all__ = ["BaseModel", "TenantMixin", "pg_enum"]
