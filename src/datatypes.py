"""Configuration dataclasses for the transcript archive tool."""
from dataclasses import dataclass, field

_APPLE_PODCASTS_CONTAINER = "~/Library/Group Containers/243LU875E5.groups.com.apple.podcasts"


@dataclass
class PathsConfig:
    """Filesystem locations for the archive, the TTML cache, and the metadata store."""

    transcripts_dir: str = "transcripts"
    ttml_cache_dir: str = f"{_APPLE_PODCASTS_CONTAINER}/Library/Cache/Assets/TTML"
    metadata_db: str = f"{_APPLE_PODCASTS_CONTAINER}/Documents/MTLibrary.sqlite"


@dataclass
class CatalogConfig:
    """Defaults for listing and interactive selection."""

    list_limit: int = 20
    select_page_size: int = 10
    default_select_status: str = "unplayed"


@dataclass
class SyncConfig:
    """Options applied while converting cached transcripts."""

    include_timestamps: bool = True


@dataclass
class CLIConfig:
    """CLI presentation controls."""

    no_color: bool = False
    json_indent: int = 2


@dataclass
class AppConfig:
    """Aggregated configuration loaded from the user-provided TOML file."""

    paths: PathsConfig = field(default_factory=PathsConfig)
    catalog: CatalogConfig = field(default_factory=CatalogConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    cli: CLIConfig = field(default_factory=CLIConfig)
