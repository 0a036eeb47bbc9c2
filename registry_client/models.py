"""
Data models for registry lookups.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class Endpoint(str, Enum):
    """Upstream endpoint kinds."""
    CRATE = "crate"
    VERSIONS = "versions"
    DEPENDENCIES = "dependencies"
    SEARCH = "search"


@dataclass(frozen=True)
class QueryKey:
    """Canonical identity of one logical lookup, used as the cache key."""
    endpoint: Endpoint
    name: str
    version: Optional[str] = None
    params: Tuple[Tuple[str, str], ...] = ()

    @classmethod
    def build(cls, endpoint: Endpoint, name: str, version: Optional[str] = None,
              params: Optional[Dict[str, Any]] = None) -> "QueryKey":
        items = tuple(sorted((str(k), str(v)) for k, v in (params or {}).items()))
        return cls(endpoint=endpoint, name=name, version=version, params=items)


class DependencyKind(str, Enum):
    """Dependency kinds reported by the registry."""
    NORMAL = "normal"
    DEV = "dev"
    BUILD = "build"


class CrateStatus(str, Enum):
    """Availability of a crate derived from its version list."""
    EXISTS = "exists"
    NOT_FOUND = "not_found"
    YANKED = "yanked"
    PARTIALLY_YANKED = "partially_yanked"


class RegistryModel(BaseModel):
    """Frozen result model; collections are tuples."""
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class VersionInfo(RegistryModel):
    """Single published version."""
    number: str = Field(..., alias="num")
    yanked: bool = False
    published_at: datetime = Field(..., alias="created_at")
    downloads: int = 0
    license: Optional[str] = None
    crate_size: Optional[int] = None


class DependencyInfo(RegistryModel):
    """Dependency declared by a crate version."""
    name: str = Field(..., alias="crate_id")
    version_req: str = Field(..., alias="req")
    kind: DependencyKind = DependencyKind.NORMAL
    optional: bool = False
    features: Tuple[str, ...] = ()
    default_features: bool = True
    target: Optional[str] = None


class CrateInfo(RegistryModel):
    """Full crate metadata."""
    name: str
    newest_version: str
    description: Optional[str] = None
    downloads: int = 0
    versions: Tuple[VersionInfo, ...] = ()
    dependencies: Optional[Tuple[DependencyInfo, ...]] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    homepage: Optional[str] = None
    repository: Optional[str] = None
    documentation: Optional[str] = None
    keywords: Tuple[str, ...] = ()
    categories: Tuple[str, ...] = ()
    max_upload_size: Optional[int] = None
    recent_downloads: Optional[int] = None


class CrateSummary(RegistryModel):
    """Search hit."""
    name: str
    newest_version: str
    description: Optional[str] = None
    downloads: int = 0
    exact_match: bool = False


class SearchResult(RegistryModel):
    """Search results in registry relevance order."""
    crates: Tuple[CrateSummary, ...] = ()
    total_count: int = 0


class VersionDownload(RegistryModel):
    version: str
    downloads: int
    date: datetime


class DownloadStats(RegistryModel):
    """Aggregate downloads plus the most downloaded versions."""
    total: int
    versions: Tuple[VersionDownload, ...] = ()


class CrateCheck(RegistryModel):
    """Existence/version check for one crate."""
    crate_name: str
    exists: bool
    latest_version: Optional[str] = None
    requested_version: Optional[str] = None
    version_exists: Optional[bool] = None
    info: Optional[CrateInfo] = None
