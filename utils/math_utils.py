import math
from collections import namedtuple

import numpy as np

from config.settings import DEFAULT_HFOV_DEG, IRIS_DIAMETER_CM, PORTRAIT_BIAS_CM, LANDSCAPE_BIAS_CM

# center: (x, y) 归一化坐标; edges: 4 个边缘点，顺序与 MediaPipe 一致
Iris = namedtuple("Iris", ["center", "edges"])


def focal_length_pixels(image_width, hfov_deg=DEFAULT_HFOV_DEG):
    """
    针孔模型焦距 (像素)
    tan(fov/2) = (W/2) / f  =>  f = W / (2 * tan(fov/2))
    """
    fov_rad = math.radians(hfov_deg)
    return image_width / (2.0 * math.tan(fov_rad / 2.0))


def extract_iris(landmarks, center_idx):
    """
    从关键点序列中取出一个虹膜 (中心 + 4 个边缘点)
    任意一个点缺失则返回 None
    """
    if landmarks is None or center_idx < 0 or center_idx + 4 >= len(landmarks):
        return None

    points = []
    for i in range(5):
        pt = landmarks[center_idx + i]
        if pt is None:
            return None
        points.append((float(pt[0]), float(pt[1])))

    return Iris(center=points[0], edges=tuple(points[1:]))


def iris_apparent_size(iris, frame_width, frame_height):
    """
    虹膜在画面中的像素直径
    取两组对边 (0-2, 1-3) 差值的平均，再分别乘以像素宽高
    """
    e0, e1, e2, e3 = iris.edges
    dx = ((e0[0] - e2[0]) + (e1[0] - e3[0])) / 2.0 * frame_width
    dy = ((e0[1] - e2[1]) + (e1[1] - e3[1])) / 2.0 * frame_height
    return math.sqrt(dx * dx + dy * dy)


def iris_distance(iris, frame_width, frame_height, hfov_deg=DEFAULT_HFOV_DEG, iris_diameter_cm=IRIS_DIAMETER_CM):
    """
    虹膜到摄像头的距离 (cm)
    distance = f * 真实直径 / 像素直径
    像素直径退化 (<= 0) 时返回 None
    """
    iris_size = iris_apparent_size(iris, frame_width, frame_height)
    if iris_size <= 0:
        return None

    f = focal_length_pixels(frame_width, hfov_deg)
    return f * iris_diameter_cm / iris_size


def iris_position(iris, distance_cm, frame_width, frame_height, hfov_deg=DEFAULT_HFOV_DEG):
    """
    将虹膜中心反投影到相机坐标系 (cm)
    X = -Z * (u - cx) / f
    Y = -Z * (v - cy) / f
    x 轴向左为正 (镜像)，y 轴向上为正
    """
    f = focal_length_pixels(frame_width, hfov_deg)

    u, v = iris.center
    x = -(u * frame_width - frame_width / 2.0) * distance_cm / f
    y = -(v * frame_height - frame_height / 2.0) * distance_cm / f
    z = distance_cm

    return np.array([x, y, z], dtype="double")


def eye_midpoint(pos_right, pos_left):
    # 双眼中点作为观察者位置
    return (pos_right + pos_left) / 2.0


def vertical_bias(is_portrait, portrait_bias_cm=PORTRAIT_BIAS_CM, landscape_bias_cm=LANDSCAPE_BIAS_CM):
    return portrait_bias_cm if is_portrait else landscape_bias_cm
