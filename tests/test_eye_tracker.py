import math

import pytest

from config.settings import TrackingConfig
from trackers.eye_tracker import LOST, TRACKING, EyeTracker, LandmarkFrame

from conftest import make_landmark_frame

W, H = 160, 120
F = 160 / (2 * math.tan(math.radians(30)))


def expected_distance(radius):
    # conftest 生成的虹膜: dx = r*W, dy = r*H
    return F * 1.17 / math.hypot(radius * W, radius * H)


def test_initial_snapshot_has_no_position():
    tracker = EyeTracker()
    snap = tracker.snapshot
    assert snap.eye_position is None
    assert snap.frames_face_hidden == 0
    assert snap.face_lost is False


def test_first_detection_sets_distance_and_position(landmark_frame):
    tracker = EyeTracker()
    snap = tracker.update(landmark_frame, W, H, now_ms=1000.0)

    d = expected_distance(0.02)
    assert snap.distance_left == pytest.approx(d)
    assert snap.distance_right == pytest.approx(d)

    x, y, z = snap.eye_position
    assert x == pytest.approx(0.0, abs=1e-9)
    assert y == pytest.approx(-20.0)   # 横屏偏置
    assert z == pytest.approx(d)
    assert snap.state == TRACKING


def test_portrait_bias():
    tracker = EyeTracker(is_portrait=True)
    snap = tracker.update(make_landmark_frame(), W, H, now_ms=0.0)
    assert snap.eye_position[1] == pytest.approx(-30.0)

    tracker.set_portrait(False)
    snap = tracker.update(make_landmark_frame(), W, H, now_ms=16.0)
    assert snap.eye_position[1] == pytest.approx(-20.0)


def test_closer_eye_distance_is_used_for_both():
    tracker = EyeTracker()
    # 右眼虹膜更大 => 更近
    frame = make_landmark_frame(right=(0.3, 0.5), left=(0.7, 0.5))
    points = list(frame.points)
    points[468:473] = [(0.3, 0.5), (0.33, 0.5), (0.3, 0.53), (0.27, 0.5), (0.3, 0.47)]
    frame = LandmarkFrame(1, 0.0, tuple(points))

    snap = tracker.update(frame, W, H, now_ms=0.0)
    assert snap.distance_right < snap.distance_left
    assert snap.eye_position[2] == pytest.approx(snap.distance_right)

    # 对称放置时 x 抵消
    assert snap.eye_position[0] == pytest.approx(0.0, abs=1e-9)


def test_distance_is_smoothed_over_frames():
    tracker = EyeTracker()
    tracker.update(make_landmark_frame(radius=0.02), W, H, now_ms=0.0)
    near = expected_distance(0.02)
    far = expected_distance(0.01)

    snap = tracker.update(make_landmark_frame(radius=0.01), W, H, now_ms=10.0)
    expected = near + (far - near) * (1 - 0.99 ** 10)
    assert snap.distance_right == pytest.approx(expected)


def test_zero_dt_keeps_smoothed_distance():
    tracker = EyeTracker()
    first = tracker.update(make_landmark_frame(radius=0.02), W, H, now_ms=50.0)
    snap = tracker.update(make_landmark_frame(radius=0.01), W, H, now_ms=50.0)
    assert snap.distance_right == pytest.approx(first.distance_right)


def test_hidden_counter_counts_and_resets(landmark_frame):
    tracker = EyeTracker()
    tracker.update(landmark_frame, W, H, now_ms=0.0)
    position = tracker.snapshot.eye_position

    for n in range(1, 6):
        snap = tracker.update(None, W, H, now_ms=n * 33.0)
        assert snap.frames_face_hidden == n
        assert snap.state == LOST
        # 人脸丢失时保留上一次的位置
        assert snap.eye_position == position

    snap = tracker.update(landmark_frame, W, H, now_ms=200.0)
    assert snap.frames_face_hidden == 0
    assert snap.state == TRACKING


@pytest.mark.parametrize("hidden, lost", [(0, False), (1, False), (2, False), (3, False), (4, True), (10, True)])
def test_lost_flag_threshold(hidden, lost):
    tracker = EyeTracker()
    for i in range(hidden):
        tracker.update(None, W, H, now_ms=i)
    assert tracker.snapshot.frames_face_hidden == hidden
    assert tracker.snapshot.face_lost is lost


def test_custom_lost_threshold():
    tracker = EyeTracker(TrackingConfig(lost_threshold=1))
    tracker.update(None, W, H, now_ms=0)
    assert not tracker.snapshot.face_lost
    tracker.update(None, W, H, now_ms=1)
    assert tracker.snapshot.face_lost


def test_incomplete_landmarks_count_as_hidden():
    tracker = EyeTracker()
    frame = LandmarkFrame(1, 0.0, tuple([(0.5, 0.5)] * 468))
    snap = tracker.update(frame, W, H, now_ms=0.0)
    assert snap.frames_face_hidden == 1
    assert snap.eye_position is None
    assert snap.distance_left is None


def test_update_replaces_snapshot_object(landmark_frame):
    tracker = EyeTracker()
    before = tracker.snapshot
    tracker.update(landmark_frame, W, H, now_ms=0.0)
    # 旧快照不被修改
    assert before.eye_position is None
    assert tracker.snapshot is not before


def test_landmark_frame_from_landmark_objects():
    class Lm:
        def __init__(self, x, y):
            self.x, self.y, self.z = x, y, 0.0

    frame = LandmarkFrame.from_landmarks(7, 123.0, [Lm(0.1, 0.2), Lm(0.3, 0.4)])
    assert frame.frame_id == 7
    assert frame.timestamp == 123.0
    assert frame.points == ((0.1, 0.2), (0.3, 0.4))
