"""Pydantic parameter models for the submap mapper."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from lidar_submap.common import constants


class BaseMapperParams(BaseModel):
    """Shared parameter base: unknown keys are rejected, assignments re-validated."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)


class CroppingParams(BaseMapperParams):
    """Region of interest relative to a reference pose."""

    cropper_name: Literal["MaxRadius", "MinMaxRadius", "Cylinder"] = constants.CROPPER_MAX_RADIUS
    cropping_radius: float = Field(constants.CROPPING_RADIUS_DEFAULT, gt=0.0)
    min_radius: float = Field(constants.CROPPING_MIN_RADIUS_DEFAULT, ge=0.0)
    min_z: float = constants.CROPPING_MIN_Z_DEFAULT
    max_z: float = constants.CROPPING_MAX_Z_DEFAULT

    @model_validator(mode="after")
    def _check_bounds(self) -> "CroppingParams":
        if self.min_z > self.max_z:
            raise ValueError(f"min_z ({self.min_z}) must not exceed max_z ({self.max_z})")
        if self.min_radius >= self.cropping_radius:
            raise ValueError(
                f"min_radius ({self.min_radius}) must be smaller than cropping_radius ({self.cropping_radius})"
            )
        return self


class SpaceCarvingParams(BaseMapperParams):
    """Occlusion-based removal of stale map content."""

    voxel_size: float = Field(constants.CARVING_VOXEL_SIZE_DEFAULT, gt=0.0)
    max_raytracing_length: float = Field(constants.CARVING_MAX_RAYTRACING_LENGTH_DEFAULT, gt=0.0)
    truncation_distance: float = Field(constants.CARVING_TRUNCATION_DISTANCE_DEFAULT, ge=0.0)
    carve_space_every_n_sec: float = Field(constants.CARVING_EVERY_N_SEC_DEFAULT, ge=0.0)
    min_dot_product_with_normal: float = Field(
        constants.CARVING_MIN_DOT_PRODUCT_WITH_NORMAL_DEFAULT, ge=0.0, le=1.0
    )
    min_range: float = Field(constants.CARVING_MIN_RANGE_DEFAULT, ge=0.0)


class MapBuilderParams(BaseMapperParams):
    """Sparse (main cloud) layer."""

    map_voxel_size: float = constants.MAP_VOXEL_SIZE_DEFAULT
    cropper: CroppingParams = Field(default_factory=CroppingParams)
    carving: SpaceCarvingParams = Field(default_factory=SpaceCarvingParams)
    carving_cropping_radius_multiplier: float = Field(constants.CARVING_CROPPING_RADIUS_MULTIPLIER, gt=0.0)


class DenseMapBuilderParams(BaseMapperParams):
    """Dense (voxelized, coloured) layer."""

    map_voxel_size: float = Field(constants.DENSE_MAP_VOXEL_SIZE_DEFAULT, gt=0.0)
    cropper: CroppingParams = Field(default_factory=CroppingParams)
    carving: SpaceCarvingParams = Field(default_factory=SpaceCarvingParams)
    cropping_radius_multiplier: float = Field(constants.DENSE_CROPPING_RADIUS_MULTIPLIER, gt=0.0)


class ScanMatcherParams(BaseMapperParams):
    """Only the parts of scan matching the submap needs (normals on insertion)."""

    icp_objective: Literal["PointToPoint", "PointToPlane"] = constants.ICP_OBJECTIVE_POINT_TO_PLANE
    knn_normal_estimation: int = Field(constants.KNN_NORMAL_ESTIMATION_DEFAULT, ge=3)


class PlaceRecognitionParams(BaseMapperParams):
    """Feature summary (downsampled cloud + FPFH descriptors)."""

    feature_voxel_size: float = Field(constants.FEATURE_VOXEL_SIZE_DEFAULT, gt=0.0)
    feature_radius: float = Field(constants.FEATURE_RADIUS_DEFAULT, gt=0.0)
    feature_knn: int = Field(constants.FEATURE_KNN_DEFAULT, ge=1)
    normal_estimation_radius: float = Field(constants.FEATURE_NORMAL_ESTIMATION_RADIUS_DEFAULT, gt=0.0)
    normal_knn: int = Field(constants.FEATURE_NORMAL_KNN_DEFAULT, ge=3)


class SubmapParams(BaseMapperParams):
    """Submap bookkeeping and spatial index."""

    min_seconds_between_feature_computation: float = Field(
        constants.MIN_SECONDS_BETWEEN_FEATURE_COMPUTATION_DEFAULT, ge=0.0
    )
    voxel_map_voxel_size: float = Field(constants.VOXEL_MAP_VOXEL_SIZE_DEFAULT, gt=0.0)
    voxel_map_layer_name: str = constants.VOXEL_MAP_LAYER_DEFAULT


class MapperParams(BaseMapperParams):
    """Complete submap configuration; replaced wholesale via Submap.set_parameters()."""

    map_builder: MapBuilderParams = Field(default_factory=MapBuilderParams)
    dense_map_builder: DenseMapBuilderParams = Field(default_factory=DenseMapBuilderParams)
    scan_matcher: ScanMatcherParams = Field(default_factory=ScanMatcherParams)
    place_recognition: PlaceRecognitionParams = Field(default_factory=PlaceRecognitionParams)
    submaps: SubmapParams = Field(default_factory=SubmapParams)
