import numpy as np

from modules.depth_layers import layer_camera_transforms
from modules.visualizer import Visualizer
from trackers.eye_tracker import EyeTracker

from conftest import make_landmark_frame


def test_compose_without_camera_frame():
    snapshot = EyeTracker().snapshot
    canvas = Visualizer().compose(None, snapshot, layer_camera_transforms(None), fps=60, status="unavailable")
    assert canvas.shape == (480, 640, 3)
    assert canvas.any()


def test_compose_scales_small_capture_frame():
    tracker = EyeTracker()
    tracker.update(make_landmark_frame(), 160, 120, now_ms=0.0)
    snapshot = tracker.snapshot

    frame = np.zeros((120, 160, 3), dtype=np.uint8)
    out = Visualizer().compose(frame, snapshot, layer_camera_transforms(snapshot.eye_position), fps=30)
    assert out.shape == (480, 640, 3)
    # 原始帧不被修改
    assert not frame.any()


def test_lost_banner_drawn_when_face_lost():
    tracker = EyeTracker()
    for i in range(4):
        tracker.update(None, 160, 120, now_ms=float(i))
    lost = tracker.snapshot
    found = EyeTracker().snapshot

    viz = Visualizer()
    transforms = layer_camera_transforms(None)
    with_banner = viz.compose(None, lost, transforms, fps=30)
    without_banner = viz.compose(None, found, transforms, fps=30)

    # 中心偏左区域只有提示文字 (避开十字准星)
    h, w = with_banner.shape[:2]
    center = (slice(h // 2 - 30, h // 2), slice(w // 4, w // 2 - 20))
    assert with_banner[center].any()
    assert not without_banner[center].any()
