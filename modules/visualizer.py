import cv2
import numpy as np

from config.settings import RIGHT_IRIS_CENTER, LEFT_IRIS_CENTER
from modules.depth_layers import get_layer_config
from utils.math_utils import extract_iris

WINDOW_NAME = "Head Tracked Parallax (MediaPipe)"

# BGR
LAYER_COLORS = {
    0: (255, 128, 0),   # background
    1: (0, 255, 0),     # midground
    2: (0, 128, 255),   # foreground
}


class Visualizer:
    def __init__(self, window_name=WINDOW_NAME, canvas_size=(480, 640)):
        self.window_name = window_name
        self.canvas_size = canvas_size

    def render(self, frame, snapshot, transforms, fps, drop_rate=0.0, status=None):
        """
        统一渲染入口
        frame 为 None 时 (摄像头不可用) 使用黑色画布
        返回 True 表示按下了 ESC
        """
        frame = self.compose(frame, snapshot, transforms, fps, drop_rate, status)
        cv2.imshow(self.window_name, frame)
        return cv2.waitKey(1) & 0xFF == 27

    def compose(self, frame, snapshot, transforms, fps, drop_rate=0.0, status=None):
        if frame is None:
            h, w = self.canvas_size
            frame = np.zeros((h, w, 3), dtype=np.uint8)
        else:
            # 小分辨率采集画面放大后再绘制文字
            h, w = frame.shape[:2]
            scale = max(1, self.canvas_size[1] // max(w, 1))
            frame = cv2.resize(frame, (w * scale, h * scale), interpolation=cv2.INTER_NEAREST)

        # 1. 绘制虹膜
        if snapshot.landmarks is not None and snapshot.frames_face_hidden == 0:
            self._draw_iris(frame, snapshot.landmarks)

        # 2. 绘制信息与各层相机
        self._draw_overlay(frame, snapshot, transforms, fps, drop_rate, status)

        # 3. 丢失用户提示
        if snapshot.face_lost:
            self._draw_lost_banner(frame)

        return frame

    def _draw_iris(self, frame, landmarks):
        h, w = frame.shape[:2]
        for center_idx in (RIGHT_IRIS_CENTER, LEFT_IRIS_CENTER):
            iris = extract_iris(landmarks.points, center_idx)
            if iris is None:
                continue
            cx, cy = int(iris.center[0] * w), int(iris.center[1] * h)
            cv2.circle(frame, (cx, cy), 3, (0, 255, 0), -1, cv2.LINE_AA)
            for ex, ey in iris.edges:
                cv2.circle(frame, (int(ex * w), int(ey * h)), 1, (0, 0, 255), -1, cv2.LINE_AA)

    def _draw_overlay(self, frame, snapshot, transforms, fps, drop_rate, status):
        h, w = frame.shape[:2]

        # 绘制光轴中心（十字准星）
        center_x, center_y = w // 2, h // 2
        cv2.line(frame, (center_x - 10, center_y), (center_x + 10, center_y), (0, 0, 255), 1)
        cv2.line(frame, (center_x, center_y - 10), (center_x, center_y + 10), (0, 0, 255), 1)

        # 丢包率颜色
        drop_color = (0, 255, 0)
        if drop_rate > 0.1: drop_color = (0, 255, 255)
        if drop_rate > 0.3: drop_color = (0, 0, 255)

        info_text = f"FPS: {int(fps)} | Drop: {drop_rate*100:.1f}%"
        if status:
            info_text += f" | {status}"
        cv2.putText(frame, info_text, (10, 25), cv2.FONT_HERSHEY_SIMPLEX, 0.6, drop_color, 2)

        eye = snapshot.eye_position
        if eye is None:
            eye_text = "Eye Pos: N/A"
        else:
            # 参考系：原点摄像头，Z光轴，X水平，Y竖直
            eye_text = f"Eye Pos: X:{eye[0]:.1f} Y:{eye[1]:.1f} Z:{eye[2]:.1f} cm"
        cv2.putText(frame, eye_text, (10, 55), cv2.FONT_HERSHEY_SIMPLEX, 0.6, (0, 255, 255), 2)

        y = 85
        for layer_id, transform in sorted(transforms.items()):
            px, py, pz = transform.position
            name = get_layer_config(layer_id).name
            text = f"{name}: ({px:.2f}, {py:.2f}, {pz:.2f})"
            cv2.putText(frame, text, (10, y), cv2.FONT_HERSHEY_SIMPLEX, 0.5, LAYER_COLORS.get(layer_id, (255, 255, 255)), 1)
            y += 22

    def _draw_lost_banner(self, frame):
        h, w = frame.shape[:2]

        # 四周红色描边
        overlay = frame.copy()
        cv2.rectangle(overlay, (0, 0), (w - 1, h - 1), (103, 100, 255), max(4, min(w, h) // 10))
        cv2.addWeighted(overlay, 0.3, frame, 0.7, 0, frame)

        text = "CAN'T FIND USER"
        hint = "Please center your face in the camera frame"
        (tw, th), _ = cv2.getTextSize(text, cv2.FONT_HERSHEY_SIMPLEX, 1.0, 2)
        (hw, _), _ = cv2.getTextSize(hint, cv2.FONT_HERSHEY_SIMPLEX, 0.45, 1)
        cv2.putText(frame, text, ((w - tw) // 2, h // 2), cv2.FONT_HERSHEY_SIMPLEX, 1.0, (255, 255, 255), 2)
        cv2.putText(frame, hint, ((w - hw) // 2, h // 2 + th + 10), cv2.FONT_HERSHEY_SIMPLEX, 0.45, (230, 230, 230), 1)

    def close(self):
        cv2.destroyAllWindows()
