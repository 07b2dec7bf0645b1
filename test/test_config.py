"""
Configuration loading tests (YAML layouts, validation, CLI).
"""

import json
import os

import pytest
import yaml
from pydantic import ValidationError

import lidar_submap
from lidar_submap.common.config import default_config_path as packaged_config_path
from lidar_submap.common.config import load_mapper_params, mapper_params_from_dict
from lidar_submap.common.param_models import CroppingParams, MapperParams
from lidar_submap.tools.print_params import main as print_params_main


class TestLoadMapperParams:
    def test_packaged_default(self, default_config_path):
        params = load_mapper_params(default_config_path)
        assert params.map_builder.cropper.cropper_name == "MaxRadius"
        assert params.dense_map_builder.cropper.cropper_name == "Cylinder"
        assert params.dense_map_builder.cropping_radius_multiplier == pytest.approx(1.2)
        assert params.submaps.min_seconds_between_feature_computation == pytest.approx(5.0)

    def test_none_loads_default(self):
        assert isinstance(load_mapper_params(None), MapperParams)

    def test_default_path_resolves_inside_installed_package(self):
        package_dir = os.path.dirname(os.path.abspath(lidar_submap.__file__))
        path = packaged_config_path()
        assert os.path.isfile(path)
        assert os.path.commonpath([package_dir, os.path.abspath(path)]) == package_dir

    def test_default_loads_from_any_working_directory(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        params = load_mapper_params()
        assert params.map_builder.carving_cropping_radius_multiplier == pytest.approx(1.2)

    def test_ros_parameters_wrapper(self, tmp_path):
        path = tmp_path / "ros.yaml"
        path.write_text(yaml.safe_dump({
            "/**": {"ros__parameters": {"mapper": {"map_builder": {"map_voxel_size": 0.3}}}}
        }))
        params = load_mapper_params(str(path))
        assert params.map_builder.map_voxel_size == pytest.approx(0.3)
        # Unspecified sections keep their defaults.
        assert params.scan_matcher.icp_objective == "PointToPlane"

    def test_bare_keys(self):
        params = mapper_params_from_dict({"scan_matcher": {"icp_objective": "PointToPoint"}})
        assert params.scan_matcher.icp_objective == "PointToPoint"

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_mapper_params(str(path)) == MapperParams()

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_mapper_params(str(tmp_path / "nope.yaml"))

    def test_unknown_key_rejected(self):
        with pytest.raises(ValidationError):
            mapper_params_from_dict({"map_builder": {"voxel": 0.1}})

    def test_unknown_cropper_rejected(self):
        with pytest.raises(ValidationError):
            mapper_params_from_dict({"map_builder": {"cropper": {"cropper_name": "Sphere"}}})

    def test_non_mapping_top_level(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- 1\n- 2\n")
        with pytest.raises(ValueError):
            load_mapper_params(str(path))


class TestParamModels:
    def test_cropping_bounds_validated(self):
        with pytest.raises(ValidationError):
            CroppingParams(min_z=1.0, max_z=0.0)
        with pytest.raises(ValidationError):
            CroppingParams(min_radius=30.0, cropping_radius=20.0)

    def test_assignment_validated(self):
        params = MapperParams()
        with pytest.raises(ValidationError):
            params.place_recognition.feature_radius = -1.0


class TestPrintParamsCli:
    def test_text_output(self, default_config_path, capsys):
        assert print_params_main([default_config_path]) == 0
        out = capsys.readouterr().out
        assert "map_builder:" in out
        assert "cropper_name: MaxRadius" in out

    def test_no_argument_uses_packaged_config(self, tmp_path, monkeypatch, capsys):
        monkeypatch.chdir(tmp_path)
        assert print_params_main([]) == 0
        assert "carving_cropping_radius_multiplier: 1.2" in capsys.readouterr().out

    def test_json_section(self, default_config_path, capsys):
        assert print_params_main([default_config_path, "--section", "submaps", "--json"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert list(data.keys()) == ["submaps"]
        assert data["submaps"]["voxel_map_layer_name"] == "map"

    def test_invalid_config(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text(yaml.safe_dump({"mapper": {"submaps": {"voxel_map_voxel_size": -1.0}}}))
        assert print_params_main([str(path)]) == 1

    def test_missing_config(self, tmp_path):
        assert print_params_main([str(tmp_path / "missing.yaml")]) == 2
