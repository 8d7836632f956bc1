"""
Unit tests for mesh_surgery.project_config module.

Tests:
- Configuration dataclasses
- JSON serialization/deserialization
- Config file loading
- Config merging
- Applying values to module constants
"""

import json
import logging

import pytest

from mesh_surgery import config as cfg
from mesh_surgery.project_config import (
    CONFIG_FILENAME,
    SECTIONS,
    HoleFillConfig,
    ProjectConfig,
    ProjectionConfig,
    SpatialIndexConfig,
    WeldConfig,
    apply_config_to_globals,
    create_sample_config,
    find_config_file,
    load_config,
    merge_configs,
)
from mesh_surgery.repair.hole_fill import CENTROID_FAN, choose_strategy, fill_hole

GLOBAL_NAMES = [
    "BVH_MAX_LEAF_SIZE", "BVH_MAX_DEPTH", "SEARCH_START_RADIUS", "SEARCH_MAX_RADIUS",
    "SEARCH_GROWTH", "PROJECTION_EPS", "CENTROID_FAN_MAX_EDGES", "EARCUT_MAX_EDGES",
    "DEGENERATE_EPS", "DEDUP_TOLERANCE", "WELD_TOLERANCE",
]


@pytest.fixture
def isolated_dirs(tmp_path, monkeypatch):
    """Empty working and home directories so no real config is picked up."""
    work = tmp_path / "work"
    home = tmp_path / "home"
    work.mkdir()
    home.mkdir()
    monkeypatch.chdir(work)
    monkeypatch.setenv("HOME", str(home))
    return work, home


class TestSections:
    """Tests for section dataclasses."""

    def test_defaults_follow_module_constants(self):
        assert SpatialIndexConfig().max_leaf_size == 20
        assert SpatialIndexConfig().start_radius == 0.1
        assert SpatialIndexConfig().max_radius == 1000.0
        assert ProjectionConfig().eps == 1e-6
        assert HoleFillConfig().centroid_fan_max_edges == 6
        assert HoleFillConfig().earcut_max_edges == 50
        assert WeldConfig().tolerance == 1e-6

    def test_section_names(self):
        assert list(SECTIONS) == ["spatial_index", "projection", "hole_fill", "weld"]

    def test_custom_values(self):
        hole_fill = HoleFillConfig(earcut_max_edges=80, parallel=False)
        assert hole_fill.earcut_max_edges == 80
        assert not hole_fill.parallel


class TestProjectConfig:
    """Tests for ProjectConfig serialization."""

    def test_to_dict_has_all_sections(self):
        data = ProjectConfig().to_dict()
        assert set(data) == set(SECTIONS)
        assert data["weld"] == {"tolerance": 1e-6}

    def test_json_round_trip(self):
        original = ProjectConfig()
        original.spatial_index.max_leaf_size = 8
        original.hole_fill.parallel = False
        original.weld.tolerance = 1e-3

        restored = ProjectConfig.from_json(original.to_json())

        assert restored == original

    def test_partial_dict(self):
        project = ProjectConfig.from_dict({"projection": {"eps": 1e-4}})
        assert project.projection.eps == 1e-4
        assert project.hole_fill == HoleFillConfig()

    def test_comments_skipped(self):
        project = ProjectConfig.from_dict({
            "_comment": "top",
            "weld": {"_comment": "inner", "tolerance": 0.01},
        })
        assert project.weld.tolerance == 0.01

    def test_unknown_entries_warned(self, caplog):
        with caplog.at_level(logging.WARNING, logger="mesh_surgery"):
            project = ProjectConfig.from_dict({
                "rendering": {"dpi": 300},
                "weld": {"radius": 2.0},
            })
        assert project == ProjectConfig()
        assert "Unknown config section: rendering" in caplog.text
        assert "Unknown config key: weld.radius" in caplog.text

    def test_save_and_load(self, tmp_path):
        project = ProjectConfig()
        project.spatial_index.growth = 3.0
        path = tmp_path / "cfg.json"
        project.save(path)

        assert json.loads(path.read_text(encoding="utf-8"))["spatial_index"]["growth"] == 3.0
        assert ProjectConfig.load(path).spatial_index.growth == 3.0

    def test_load_missing_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            ProjectConfig.load(tmp_path / "missing.json")


class TestFindConfigFile:
    """Tests for find_config_file and load_config."""

    def test_nothing_found(self, isolated_dirs):
        assert find_config_file() is None
        assert load_config() == ProjectConfig()

    def test_explicit_path(self, isolated_dirs, tmp_path):
        explicit = tmp_path / "explicit.json"
        explicit.write_text('{"weld": {"tolerance": 0.5}}', encoding="utf-8")

        assert find_config_file(explicit_config=explicit) == explicit
        assert load_config(explicit_config=explicit).weld.tolerance == 0.5

    def test_missing_explicit_falls_through(self, isolated_dirs, caplog):
        work, _ = isolated_dirs
        (work / CONFIG_FILENAME).write_text("{}", encoding="utf-8")
        with caplog.at_level(logging.WARNING, logger="mesh_surgery"):
            found = find_config_file(explicit_config=work / "nope.json")
        assert found.name == CONFIG_FILENAME
        assert "Explicit config not found" in caplog.text

    def test_next_to_mesh_wins_over_cwd(self, isolated_dirs, tmp_path):
        work, _ = isolated_dirs
        mesh_dir = tmp_path / "meshes"
        mesh_dir.mkdir()
        (mesh_dir / CONFIG_FILENAME).write_text('{"projection": {"eps": 0.001}}', encoding="utf-8")
        (work / CONFIG_FILENAME).write_text('{"projection": {"eps": 0.002}}', encoding="utf-8")

        project = load_config(mesh_path=mesh_dir / "part.stl")
        assert project.projection.eps == 0.001

    def test_home_directory(self, isolated_dirs):
        _, home = isolated_dirs
        (home / CONFIG_FILENAME).write_text('{"weld": {"tolerance": 0.25}}', encoding="utf-8")
        assert load_config().weld.tolerance == 0.25

    def test_broken_file_gives_defaults(self, isolated_dirs, caplog):
        work, _ = isolated_dirs
        (work / CONFIG_FILENAME).write_text("{not json", encoding="utf-8")
        with caplog.at_level(logging.ERROR, logger="mesh_surgery"):
            project = load_config()
        assert project == ProjectConfig()
        assert "Failed to load config" in caplog.text


class TestMergeConfigs:
    """Tests for merge_configs."""

    def test_override_wins_where_changed(self):
        base = ProjectConfig()
        base.weld.tolerance = 0.1
        base.projection.eps = 1e-3
        override = ProjectConfig()
        override.projection.eps = 1e-5

        merged = merge_configs(base, override)

        assert merged.projection.eps == 1e-5
        assert merged.weld.tolerance == 0.1

    def test_inputs_not_modified(self):
        base = ProjectConfig()
        override = ProjectConfig()
        override.hole_fill.earcut_max_edges = 12
        merge_configs(base, override)
        assert base.hole_fill.earcut_max_edges == 50

    def test_default_override_keeps_base(self):
        base = ProjectConfig()
        base.spatial_index.max_leaf_size = 4
        assert merge_configs(base, ProjectConfig()).spatial_index.max_leaf_size == 4


class TestApplyConfigToGlobals:
    """Tests for apply_config_to_globals."""

    def test_values_written(self, monkeypatch):
        for name in GLOBAL_NAMES:
            monkeypatch.setattr(cfg, name, getattr(cfg, name))

        project = ProjectConfig()
        project.spatial_index.max_radius = 42.0
        project.hole_fill.earcut_max_edges = 70
        project.weld.tolerance = 1e-3
        apply_config_to_globals(project)

        assert cfg.SEARCH_MAX_RADIUS == 42.0
        assert cfg.EARCUT_MAX_EDGES == 70
        assert cfg.WELD_TOLERANCE == 1e-3
        assert cfg.PROJECTION_EPS == 1e-6

    def test_hole_fill_follows_applied_values(self, monkeypatch, make_circle_loop):
        for name in GLOBAL_NAMES:
            monkeypatch.setattr(cfg, name, getattr(cfg, name))

        project = ProjectConfig()
        project.hole_fill.centroid_fan_max_edges = 12
        apply_config_to_globals(project)

        assert HoleFillConfig().centroid_fan_max_edges == 12
        assert choose_strategy(10) == CENTROID_FAN
        result = fill_hole(make_circle_loop(10))
        assert result.strategy == CENTROID_FAN
        assert result.n_triangles == 10

    def test_weld_and_projection_follow_applied_values(self, monkeypatch):
        for name in GLOBAL_NAMES:
            monkeypatch.setattr(cfg, name, getattr(cfg, name))

        project = ProjectConfig()
        project.projection.eps = 1e-3
        project.weld.tolerance = 0.05
        apply_config_to_globals(project)

        assert ProjectionConfig().eps == 1e-3
        assert WeldConfig().tolerance == 0.05
        assert ProjectConfig().spatial_index == SpatialIndexConfig()


class TestCreateSampleConfig:
    """Tests for create_sample_config."""

    def test_sample_is_loadable(self, tmp_path):
        path = tmp_path / CONFIG_FILENAME
        create_sample_config(path)

        data = json.loads(path.read_text(encoding="utf-8"))
        assert "_comment" in data
        assert all("_comment" in data[name] for name in SECTIONS)
        assert ProjectConfig.load(path) == ProjectConfig()
