from dataclasses import dataclass
from enum import Enum, IntEnum

from config.settings import POSITION_SCALE, CAMERA_BASE_Z, DEPTH_SCALE, LOOK_AT


class InvalidLayer(LookupError):
    """未知的层 id 或层名"""


class DepthLayer(IntEnum):
    BACKGROUND = 0
    MIDGROUND = 1
    FOREGROUND = 2


class RenderMode(str, Enum):
    LAYERED = "layered"
    COMPOSITE = "composite"


@dataclass(frozen=True)
class LayerConfig:
    id: int
    name: str
    z_offset: float     # 相机 z 轴偏移
    scale: float        # 该层物体的缩放系数
    description: str = ""


@dataclass(frozen=True)
class CameraTransform:
    position: tuple
    look_at: tuple = LOOK_AT


# 背景: 推远并放大; 中景: 不变; 前景: 拉近并缩小
DEPTH_LAYERS = (
    LayerConfig(0, "background", -0.8, 1.2, "Far away background elements"),
    LayerConfig(1, "midground", 0.0, 1.0, "Middle distance main elements"),
    LayerConfig(2, "foreground", 0.6, 0.8, "Close-up foreground elements"),
)

_LAYERS_BY_ID = {layer.id: layer for layer in DEPTH_LAYERS}
_LAYERS_BY_NAME = {layer.name: layer for layer in DEPTH_LAYERS}


def _is_layer_id(value):
    # 只接受整数 id: 1.0 和 True 虽然能命中字典，但不是合法的层 id
    return isinstance(value, int) and not isinstance(value, bool)


def get_layer_config(layer_id):
    if not _is_layer_id(layer_id) or layer_id not in _LAYERS_BY_ID:
        raise InvalidLayer(f"Invalid layer ID: {layer_id!r}")
    return _LAYERS_BY_ID[layer_id]


def get_layer_config_by_name(name):
    if not isinstance(name, str) or name not in _LAYERS_BY_NAME:
        raise InvalidLayer(f"Invalid layer name: {name!r}")
    return _LAYERS_BY_NAME[name]


def calculate_camera_offset(layer_ids):
    """
    活动层 z 偏移的平均值，合成模式下所有层共用这一台相机
    """
    layer_ids = list(layer_ids)
    if not layer_ids:
        return 0.0

    total = sum(get_layer_config(layer_id).z_offset for layer_id in layer_ids)
    return total / len(layer_ids)


def is_valid_layer(layer_id):
    return _is_layer_id(layer_id) and layer_id in _LAYERS_BY_ID


def get_all_layer_ids():
    return [layer.id for layer in DEPTH_LAYERS]


def _camera_for_offset(eye_position, z_offset, position_scale, base_z, depth_scale):
    if eye_position is None:
        # 没有眼睛位置时退回静态相机
        return CameraTransform(position=(0.0, 0.0, base_z + z_offset))

    x, y, z = eye_position
    # x 跟随头部，y 取反 (前置摄像头镜像约定)
    return CameraTransform(position=(
        x * position_scale,
        -y * position_scale,
        base_z + z * position_scale * depth_scale + z_offset,
    ))


def camera_transform(eye_position, layer_config,
                     position_scale=POSITION_SCALE, base_z=CAMERA_BASE_Z, depth_scale=DEPTH_SCALE):
    """
    单层相机位姿。eye_position 为相对摄像头的 (x, y, z) 厘米，尚无估计时为 None
    """
    return _camera_for_offset(eye_position, layer_config.z_offset, position_scale, base_z, depth_scale)


def composite_camera_transform(eye_position, layer_ids,
                               position_scale=POSITION_SCALE, base_z=CAMERA_BASE_Z, depth_scale=DEPTH_SCALE):
    return _camera_for_offset(eye_position, calculate_camera_offset(layer_ids),
                              position_scale, base_z, depth_scale)


def layer_camera_transforms(eye_position,
                            position_scale=POSITION_SCALE, base_z=CAMERA_BASE_Z, depth_scale=DEPTH_SCALE):
    return {layer.id: camera_transform(eye_position, layer, position_scale, base_z, depth_scale)
            for layer in DEPTH_LAYERS}
