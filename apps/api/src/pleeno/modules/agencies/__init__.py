"""
Agencies module - Tenant settings.
"""

from pleeno.modules.agencies.models import Agency
from pleeno.modules.agencies.repository import AgencyRepository

__all__ = ["Agency", "AgencyRepository"]
