import json
import logging
import os
import queue
import threading
import time

import cv2

from config.settings import DEFAULT_HFOV_DEG, CAPTURE_WIDTH, CAPTURE_HEIGHT

logger = logging.getLogger(__name__)


class SourceUnavailable(RuntimeError):
    """摄像头或检测进程无法启动。只影响头部跟踪，不影响渲染。"""


# --- 摄像头参数持久化 ---
class CameraProfiles:
    """
    每个摄像头的 FOV 和采集分辨率，以及上次使用的摄像头，保存在一个 JSON 文件里:
    {"last_camera": 0, "cameras": {"0": {"fov": 60.0, "resolution": [160, 120], "user_configured": true}}}
    """

    def __init__(self, config_dir="config", filename="tracking_profiles.json"):
        os.makedirs(config_dir, exist_ok=True)
        self.path = os.path.join(config_dir, filename)
        self.data = self._load()
        self.data.setdefault("cameras", {})

    def _load(self):
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Ignoring unreadable profile file %s: %s", self.path, e)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring malformed profile file %s", self.path)
            return {}
        return data

    def _flush(self):
        with open(self.path, 'w', encoding='utf-8') as f:
            json.dump(self.data, f, indent=4, ensure_ascii=False)

    def profile(self, device_index):
        """返回摄像头配置，缺省字段用默认值补齐"""
        saved = self.data["cameras"].get(str(device_index), {})
        w, h = saved.get("resolution", (CAPTURE_WIDTH, CAPTURE_HEIGHT))
        return {
            "fov": float(saved.get("fov", DEFAULT_HFOV_DEG)),
            "resolution": (int(w), int(h)),
            "user_configured": bool(saved.get("user_configured", False)),
        }

    def save_profile(self, device_index, fov=None, resolution=None, user_configured=False):
        entry = self.data["cameras"].setdefault(str(device_index), {})
        if fov is not None:
            entry["fov"] = float(fov)
        if resolution is not None:
            entry["resolution"] = [int(v) for v in resolution]
        if user_configured:
            entry["user_configured"] = True
        self._flush()

    @property
    def last_camera(self):
        return self.data.get("last_camera")

    @last_camera.setter
    def last_camera(self, device_index):
        self.data["last_camera"] = device_index
        self._flush()


def resolve_camera_settings(profiles, camera_index=None, fov=None):
    """
    确定摄像头索引和 FOV: 命令行参数 > 已保存配置 > 默认值
    命令行给出的 FOV 会被保存，下次无需再输入
    """
    if camera_index is None:
        camera_index = profiles.last_camera
    if camera_index is None:
        camera_index = 0

    if fov is not None:
        if not 0 < fov < 180:
            raise ValueError(f"FOV must be between 0 and 180 degrees, got {fov}")
        profiles.save_profile(camera_index, fov=fov, user_configured=True)
    else:
        fov = profiles.profile(camera_index)["fov"]

    profiles.last_camera = camera_index
    return camera_index, fov


# --- 视频流获取 (Producer) ---
class WebcamVideoStream:
    def __init__(self, src=0, width=CAPTURE_WIDTH, height=CAPTURE_HEIGHT, api_preference=cv2.CAP_ANY, queue_size=1):
        self.src = src
        self.width = width
        self.height = height
        self.api_preference = api_preference

        # 初始化摄像头
        self.stream = cv2.VideoCapture(self.src, self.api_preference)
        if not self.stream.isOpened():
            self.stream.release()
            raise SourceUnavailable(f"Could not open camera {self.src}")

        self.stream.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        self.stream.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
        # 减少 OpenCV 内部缓冲区
        self.stream.set(cv2.CAP_PROP_BUFFERSIZE, 1)

        # 读取第一帧确认
        grabbed, frame = self.stream.read()
        if not grabbed or frame is None:
            self.stream.release()
            raise SourceUnavailable(f"Could not read first frame from camera {self.src}")

        # 以实际帧尺寸为准
        self.frame_h, self.frame_w = frame.shape[:2]

        # maxsize 限制队列长度，只保留最新帧
        self.frame_queue = queue.Queue(maxsize=queue_size)
        self.frame_id = 0
        self.stopped = False
        self.t = None

    @property
    def frame_shape(self):
        return (self.frame_h, self.frame_w, 3)

    def start(self):
        logger.info("Starting capture thread for camera %s (%dx%d)", self.src, self.frame_w, self.frame_h)
        self.t = threading.Thread(target=self.update, name="capture-reader", daemon=True)
        self.t.start()
        return self

    def _timestamp_ms(self):
        # 优先使用设备时间戳，设备卡住时会重复给出同一值
        pos = self.stream.get(cv2.CAP_PROP_POS_MSEC)
        if pos and pos > 0:
            return pos
        return time.monotonic() * 1000.0

    def update(self):
        while not self.stopped:
            grabbed, frame = self.stream.read()

            if not grabbed:
                logger.warning("Camera %s stopped delivering frames", self.src)
                self.stopped = True
                return

            self.frame_id += 1
            item = (frame, self.frame_id, self._timestamp_ms())

            # 满了则移除旧帧
            if self.frame_queue.full():
                try:
                    self.frame_queue.get_nowait()
                except queue.Empty:
                    pass

            try:
                self.frame_queue.put(item, block=False)
            except queue.Full:
                pass

    def read(self, timeout=None):
        """
        获取最新帧 (frame, frame_id, timestamp_ms)，没有新帧时返回 None
        """
        try:
            if timeout is None:
                return self.frame_queue.get_nowait()
            return self.frame_queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def stop(self):
        self.stopped = True
        if self.t is not None:
            self.t.join(timeout=1.0)
        self.stream.release()
