import logging
from collections import namedtuple

from config.settings import RIGHT_IRIS_CENTER, LEFT_IRIS_CENTER, TrackingConfig
from modules.filters import ExponentialDecayFilter
from utils.math_utils import extract_iris, iris_distance, iris_position, eye_midpoint, vertical_bias

logger = logging.getLogger(__name__)

TRACKING = "tracking"
LOST = "lost"


class LandmarkFrame(namedtuple("LandmarkFrame", ["frame_id", "timestamp", "points"])):
    """
    单帧单人脸的关键点 (不可变)
    points: ((x, y), ...) 归一化坐标，顺序与 MediaPipe 人脸网格一致
    """
    __slots__ = ()

    @classmethod
    def from_landmarks(cls, frame_id, timestamp, landmarks):
        return cls(frame_id, timestamp, tuple((float(lm.x), float(lm.y)) for lm in landmarks))


class TrackingSnapshot(namedtuple("TrackingSnapshot", [
        "eye_position", "distance_left", "distance_right",
        "frames_face_hidden", "landmarks", "timestamp", "lost_threshold"])):
    """
    渲染线程读取的只读快照。EyeTracker 每次更新整体替换，不会出现半更新状态。
    """
    __slots__ = ()

    @property
    def state(self):
        return TRACKING if self.frames_face_hidden == 0 else LOST

    @property
    def face_lost(self):
        # 超过阈值才提示，避免单帧漏检导致闪烁
        return self.frames_face_hidden > self.lost_threshold


class EyeTracker:
    """
    Tracking session: 虹膜距离平滑、人脸丢失计数和眼睛 3D 位置。
    只由结果线程写入 (update)，渲染线程只读 snapshot。
    """

    def __init__(self, config=None, is_portrait=False):
        self.config = config or TrackingConfig()
        self.is_portrait = is_portrait

        self.right_dist_filter = ExponentialDecayFilter(self.config.decay_base)
        self.left_dist_filter = ExponentialDecayFilter(self.config.decay_base)

        self.last_processed_time = None
        self.snapshot = TrackingSnapshot(
            eye_position=None,
            distance_left=None,
            distance_right=None,
            frames_face_hidden=0,
            landmarks=None,
            timestamp=None,
            lost_threshold=self.config.lost_threshold,
        )

    def set_portrait(self, is_portrait):
        if is_portrait != self.is_portrait:
            logger.info("Orientation changed: %s", "portrait" if is_portrait else "landscape")
        self.is_portrait = is_portrait

    def update(self, landmark_frame, frame_width, frame_height, now_ms):
        """
        处理一帧检测结果并发布新的快照
        landmark_frame: LandmarkFrame 或 None (未检测到人脸)
        now_ms: 处理时刻 (毫秒)
        """
        dt = 0.0 if self.last_processed_time is None else now_ms - self.last_processed_time
        self.last_processed_time = now_ms

        prev = self.snapshot

        iris_right = iris_left = None
        if landmark_frame is not None:
            iris_right = extract_iris(landmark_frame.points, RIGHT_IRIS_CENTER)
            iris_left = extract_iris(landmark_frame.points, LEFT_IRIS_CENTER)

        target_right = None
        target_left = None
        if iris_right is not None and iris_left is not None:
            cfg = self.config
            target_right = iris_distance(iris_right, frame_width, frame_height, cfg.hfov_deg, cfg.iris_diameter_cm)
            target_left = iris_distance(iris_left, frame_width, frame_height, cfg.hfov_deg, cfg.iris_diameter_cm)

        if target_right is None or target_left is None:
            # 本帧没有可用人脸: 保留上一次的位置和距离
            self.snapshot = prev._replace(frames_face_hidden=prev.frames_face_hidden + 1)
            return self.snapshot

        dist_right = self.right_dist_filter.update(target_right, dt)
        dist_left = self.left_dist_filter.update(target_left, dt)

        # 距离较近的一只眼为准，减少侧脸时的不对称畸变
        min_dist = min(dist_left, dist_right)

        cfg = self.config
        pos_right = iris_position(iris_right, min_dist, frame_width, frame_height, cfg.hfov_deg)
        pos_left = iris_position(iris_left, min_dist, frame_width, frame_height, cfg.hfov_deg)

        avg_pos = eye_midpoint(pos_right, pos_left)
        avg_pos[1] -= vertical_bias(self.is_portrait, cfg.portrait_bias_cm, cfg.landscape_bias_cm)

        if prev.frames_face_hidden > 0:
            logger.debug("Face found again after %d frames", prev.frames_face_hidden)

        self.snapshot = TrackingSnapshot(
            eye_position=(float(avg_pos[0]), float(avg_pos[1]), float(avg_pos[2])),
            distance_left=dist_left,
            distance_right=dist_right,
            frames_face_hidden=0,
            landmarks=landmark_frame,
            timestamp=now_ms,
            lost_threshold=cfg.lost_threshold,
        )
        return self.snapshot
