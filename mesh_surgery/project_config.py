"""
JSON project configuration for mesh_surgery.

Configuration hierarchy (later overrides earlier):
1. Built-in defaults (config.py)
2. User config (~/.meshsurgery.json)
3. Project config (./.meshsurgery.json or next to the mesh file)
4. Explicit path given by the caller

Example .meshsurgery.json:
{
    "spatial_index": {"max_leaf_size": 16, "max_radius": 500.0},
    "projection": {"eps": 1e-5},
    "hole_fill": {"earcut_max_edges": 80, "parallel": false},
    "weld": {"tolerance": 1e-4}
}

Unknown sections and keys are ignored with a warning, so a config written
for a newer version still loads.
"""

import json
import logging
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union

from mesh_surgery import config as cfg

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".meshsurgery.json"


@dataclass
class SpatialIndexConfig:
    """BVH shape and nearest-triangle search."""
    max_leaf_size: int = field(default_factory=lambda: cfg.BVH_MAX_LEAF_SIZE)
    max_depth: int = field(default_factory=lambda: cfg.BVH_MAX_DEPTH)
    start_radius: float = field(default_factory=lambda: cfg.SEARCH_START_RADIUS)
    max_radius: float = field(default_factory=lambda: cfg.SEARCH_MAX_RADIUS)
    growth: float = field(default_factory=lambda: cfg.SEARCH_GROWTH)
    parallel_build: bool = True


@dataclass
class ProjectionConfig:
    eps: float = field(default_factory=lambda: cfg.PROJECTION_EPS)


@dataclass
class HoleFillConfig:
    """Strategy thresholds are boundary edge counts."""
    centroid_fan_max_edges: int = field(default_factory=lambda: cfg.CENTROID_FAN_MAX_EDGES)
    earcut_max_edges: int = field(default_factory=lambda: cfg.EARCUT_MAX_EDGES)
    degenerate_eps: float = field(default_factory=lambda: cfg.DEGENERATE_EPS)
    dedup_tolerance: float = field(default_factory=lambda: cfg.DEDUP_TOLERANCE)
    parallel: bool = True


@dataclass
class WeldConfig:
    tolerance: float = field(default_factory=lambda: cfg.WELD_TOLERANCE)


# Section name -> dataclass, in file order.
# Field defaults are read from mesh_surgery.config when a section is created.
SECTIONS = {
    "spatial_index": SpatialIndexConfig,
    "projection": ProjectionConfig,
    "hole_fill": HoleFillConfig,
    "weld": WeldConfig,
}


@dataclass
class ProjectConfig:
    """Complete project configuration."""
    spatial_index: SpatialIndexConfig = field(default_factory=SpatialIndexConfig)
    projection: ProjectionConfig = field(default_factory=ProjectionConfig)
    hole_fill: HoleFillConfig = field(default_factory=HoleFillConfig)
    weld: WeldConfig = field(default_factory=WeldConfig)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)

    def save(self, path: Union[str, Path]) -> None:
        path = Path(path)
        path.write_text(self.to_json(), encoding='utf-8')
        logger.info("Configuration saved to %s", path)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ProjectConfig':
        """Build a config from a (possibly partial) dictionary.

        Keys starting with "_" are treated as comments.
        """
        project = cls()
        for section_name, values in data.items():
            if section_name.startswith("_"):
                continue
            if section_name not in SECTIONS:
                logger.warning("Unknown config section: %s", section_name)
                continue
            section = getattr(project, section_name)
            for key, value in values.items():
                if key.startswith("_"):
                    continue
                if hasattr(section, key):
                    setattr(section, key, value)
                else:
                    logger.warning("Unknown config key: %s.%s", section_name, key)
        return project

    @classmethod
    def from_json(cls, json_str: str) -> 'ProjectConfig':
        return cls.from_dict(json.loads(json_str))

    @classmethod
    def load(cls, path: Union[str, Path]) -> 'ProjectConfig':
        """Load configuration from a JSON file.

        Raises:
            FileNotFoundError: If the file doesn't exist
            json.JSONDecodeError: If the file is not valid JSON
        """
        path = Path(path)
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        logger.info("Configuration loaded from %s", path)
        return cls.from_dict(data)


def find_config_file(
    mesh_path: Optional[Union[str, Path]] = None,
    explicit_config: Optional[Union[str, Path]] = None,
) -> Optional[Path]:
    """Locate a config file.

    Search order: explicit path, the mesh file's directory, the current
    working directory, the home directory.

    Returns:
        Path of the first file found, or None
    """
    if explicit_config:
        explicit = Path(explicit_config)
        if explicit.exists():
            return explicit
        logger.warning("Explicit config not found: %s", explicit)

    candidates = []
    if mesh_path:
        candidates.append(Path(mesh_path).parent / CONFIG_FILENAME)
    candidates.append(Path.cwd() / CONFIG_FILENAME)
    candidates.append(Path.home() / CONFIG_FILENAME)

    for candidate in candidates:
        if candidate.exists():
            return candidate
    return None


def load_config(
    mesh_path: Optional[Union[str, Path]] = None,
    explicit_config: Optional[Union[str, Path]] = None,
) -> ProjectConfig:
    """Load the first config found, or defaults.

    A config file that cannot be read or parsed is logged and skipped.
    """
    config_path = find_config_file(mesh_path, explicit_config)
    if config_path:
        try:
            return ProjectConfig.load(config_path)
        except (json.JSONDecodeError, OSError) as e:
            logger.error("Failed to load config %s: %s", config_path, e)
    return ProjectConfig()


def merge_configs(base: ProjectConfig, override: ProjectConfig) -> ProjectConfig:
    """Merge two configurations.

    A value from `override` wins only where it differs from the built-in
    default; untouched fields keep the value from `base`.
    """
    merged = ProjectConfig.from_dict(base.to_dict())
    for section_name, section_cls in SECTIONS.items():
        defaults = section_cls()
        source = getattr(override, section_name)
        target = getattr(merged, section_name)
        for f in fields(section_cls):
            value = getattr(source, f.name)
            if value != getattr(defaults, f.name):
                setattr(target, f.name, value)
    return merged


def apply_config_to_globals(project: ProjectConfig) -> None:
    """Write configuration values into the mesh_surgery.config module.

    Components that fall back to module constants pick the values up on
    their next call.
    """
    cfg.BVH_MAX_LEAF_SIZE = project.spatial_index.max_leaf_size
    cfg.BVH_MAX_DEPTH = project.spatial_index.max_depth
    cfg.SEARCH_START_RADIUS = project.spatial_index.start_radius
    cfg.SEARCH_MAX_RADIUS = project.spatial_index.max_radius
    cfg.SEARCH_GROWTH = project.spatial_index.growth

    cfg.PROJECTION_EPS = project.projection.eps

    cfg.CENTROID_FAN_MAX_EDGES = project.hole_fill.centroid_fan_max_edges
    cfg.EARCUT_MAX_EDGES = project.hole_fill.earcut_max_edges
    cfg.DEGENERATE_EPS = project.hole_fill.degenerate_eps
    cfg.DEDUP_TOLERANCE = project.hole_fill.dedup_tolerance

    cfg.WELD_TOLERANCE = project.weld.tolerance

    logger.debug("Applied project config to global constants")


def create_sample_config(path: Union[str, Path] = CONFIG_FILENAME) -> None:
    """Write a commented sample config with the current defaults."""
    comments = {
        "spatial_index": "Bounding volume tree and nearest-triangle search",
        "projection": "Barycentric tolerance for point-on-surface classification",
        "hole_fill": "Strategy thresholds are boundary edge counts",
        "weld": "Vertices closer than tolerance are merged",
    }
    sample: Dict[str, Any] = {"_comment": "mesh_surgery configuration", "_version": "1.0"}
    for name, values in ProjectConfig().to_dict().items():
        sample[name] = {"_comment": comments[name], **values}

    path = Path(path)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(sample, f, indent=2, ensure_ascii=False)
    logger.info("Sample configuration created: %s", path)
