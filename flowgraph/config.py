"""Application configuration using Pydantic Settings."""
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="FLOWGRAPH_",
        case_sensitive=False,
    )

    # App settings
    app_name: str = "Flowgraph Step Graph Compiler"
    debug: bool = False

    # ==========================================================================
    # NODE SIZES
    # Used by the layout when a node does not declare its own width/height
    # ==========================================================================

    node_width: float = 274
    node_height: float = 100
    # Condition nodes render their predicate source and need more room
    node_height_large: float = 260

    # ==========================================================================
    # GROUP NODES (nested workflows)
    # ==========================================================================

    group_padding: float = 40
    group_header_height: float = 50
    group_min_width: float = 300
    group_min_height: float = 150

    # ==========================================================================
    # LAYERED LAYOUT
    # ==========================================================================

    # Vertical gap between ranks
    rank_sep: float = 50
    # Horizontal gap between nodes of the same rank
    node_sep: float = 50
    sugiyama_max_iterations: int = 100

    # ==========================================================================
    # EDGE RENDERING DEFAULTS
    # ==========================================================================

    edge_z_index: int = 1
    edge_animated: bool = True
    edge_marker_size: int = 20
    edge_marker_color: str = "#8e8e8e"

    def node_size(self, width=None, height=None, is_large: bool = False) -> tuple[float, float]:
        """Resolve a node's layout size, falling back to the configured defaults."""
        if height is None:
            height = self.node_height_large if is_large else self.node_height
        return (width if width is not None else self.node_width, height)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
