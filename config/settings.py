from dataclasses import dataclass

# Visualization
VISUALIZE = True # 设为 False 时，跳过所有可视化绘制，只保留计算和 UDP 发送

# Network
UDP_IP = "127.0.0.1"
UDP_PORT = 8888

# MediaPipe Iris Indices (refined face mesh, 478 points)
# 中心点之后紧跟 4 个虹膜边缘点: center+1 .. center+4
# 468 是主体右眼 (画面左侧)，473 是主体左眼 (画面右侧)
RIGHT_IRIS = [468, 469, 470, 471, 472]
LEFT_IRIS = [473, 474, 475, 476, 477]
RIGHT_IRIS_CENTER = RIGHT_IRIS[0]
LEFT_IRIS_CENTER = LEFT_IRIS[0]

# 人眼虹膜平均直径 11.7mm
IRIS_DIAMETER_CM = 1.17

# 默认水平视场角
DEFAULT_HFOV_DEG = 60.0

# 距离平滑: smoothed += (target - smoothed) * (1 - base^dt)，dt 单位为毫秒
DISTANCE_DECAY_BASE = 0.99

# 眼睛平均位置的竖直偏置 (cm)，把注视点拉回屏幕中心
PORTRAIT_BIAS_CM = 30.0
LANDSCAPE_BIAS_CM = 20.0

# 连续多少帧未检测到人脸后提示 "CAN'T FIND USER"
LOST_THRESHOLD = 3

# 场景相机: cm -> 场景单位
POSITION_SCALE = 0.02
CAMERA_BASE_Z = 5.0
DEPTH_SCALE = 0.5
LOOK_AT = (0.0, 0.0, 0.0)

# 采集分辨率 (虹膜估距只需要很小的画面)
CAPTURE_WIDTH = 160
CAPTURE_HEIGHT = 120

RENDER_FPS = 60

# Face Landmarker 模型文件
FACE_LANDMARKER_MODEL = "face_landmarker.task"

# 共享内存名称
SHM_NAME = "frustum_parallax_frame_buffer"


@dataclass
class TrackingConfig:
    hfov_deg: float = DEFAULT_HFOV_DEG
    iris_diameter_cm: float = IRIS_DIAMETER_CM
    decay_base: float = DISTANCE_DECAY_BASE
    portrait_bias_cm: float = PORTRAIT_BIAS_CM
    landscape_bias_cm: float = LANDSCAPE_BIAS_CM
    lost_threshold: int = LOST_THRESHOLD
    capture_width: int = CAPTURE_WIDTH
    capture_height: int = CAPTURE_HEIGHT
    render_fps: int = RENDER_FPS
    position_scale: float = POSITION_SCALE
    camera_base_z: float = CAMERA_BASE_Z
    depth_scale: float = DEPTH_SCALE
