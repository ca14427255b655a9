"""Storage layer — World paths, allow-list document, name cache."""

from gatekeeper.storage.tenant import TenantContext, resolve_tenant
from gatekeeper.storage.config_store import ConfigStore
from gatekeeper.storage.name_cache import NameCache

__all__ = ["ConfigStore", "NameCache", "TenantContext", "resolve_tenant"]
