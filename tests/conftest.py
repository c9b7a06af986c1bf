import pytest

from config.settings import RIGHT_IRIS_CENTER, LEFT_IRIS_CENTER
from trackers.eye_tracker import LandmarkFrame

NUM_LANDMARKS = 478


def iris_points(cx, cy, radius):
    # 与 MediaPipe 边缘点顺序一致: e0/e2 水平对边，e1/e3 竖直对边
    return [(cx, cy), (cx + radius, cy), (cx, cy + radius), (cx - radius, cy), (cx, cy - radius)]


def make_landmark_frame(right=(0.4, 0.5), left=(0.6, 0.5), radius=0.02, frame_id=1, timestamp=0.0):
    points = [(0.5, 0.5)] * NUM_LANDMARKS
    points[RIGHT_IRIS_CENTER:RIGHT_IRIS_CENTER + 5] = iris_points(right[0], right[1], radius)
    points[LEFT_IRIS_CENTER:LEFT_IRIS_CENTER + 5] = iris_points(left[0], left[1], radius)
    return LandmarkFrame(frame_id, timestamp, tuple(points))


@pytest.fixture
def landmark_frame():
    return make_landmark_frame()
