import logging
import multiprocessing
import queue

import cv2
import mediapipe as mp
from mediapipe.tasks import python
from mediapipe.tasks.python import vision

from modules.shared_mem import SharedFrameBuffer
from trackers.eye_tracker import LandmarkFrame

logger = logging.getLogger(__name__)


def _put_latest(output_queue, message):
    # 输出队列容量为 1: 满了就丢弃旧消息
    if output_queue.full():
        try:
            output_queue.get_nowait()
        except queue.Empty:
            pass
    output_queue.put(message)


class LandmarkProcess(multiprocessing.Process):
    """
    检测进程: 共享内存取帧 -> MediaPipe Face Landmarker -> LandmarkFrame
    与主进程之间只有消息传递 (任务进, 结果出)
    """

    def __init__(self, input_queue, output_queue, stop_event, shm_name, frame_shape, model_path, generation=0):
        super().__init__()
        self.input_queue = input_queue
        self.output_queue = output_queue
        self.stop_event = stop_event
        self.shm_name = shm_name
        self.frame_shape = frame_shape
        self.model_path = model_path
        self.generation = generation
        self.daemon = True # 设置为守护进程

    def run(self):
        # --- 在子进程中初始化资源 ---

        # 1. 连接共享内存
        try:
            frame_buffer = SharedFrameBuffer(self.shm_name, self.frame_shape, create=False)
        except (FileNotFoundError, OSError) as e:
            self.output_queue.put({'type': 'error', 'generation': self.generation,
                                   'message': f"Failed to connect to shared memory: {e}"})
            return

        # 2. 初始化 MediaPipe (必须在子进程中进行)
        base_options = python.BaseOptions(model_asset_path=self.model_path)
        options = vision.FaceLandmarkerOptions(
            base_options=base_options,
            output_face_blendshapes=False,
            output_facial_transformation_matrixes=False,
            num_faces=1,
            min_face_detection_confidence=0.5,
            min_face_presence_confidence=0.5,
            min_tracking_confidence=0.5,
            running_mode=vision.RunningMode.VIDEO)

        try:
            detector = vision.FaceLandmarker.create_from_options(options)
        except (RuntimeError, ValueError, OSError) as e:
            frame_buffer.close()
            self.output_queue.put({'type': 'error', 'generation': self.generation,
                                   'message': f"Failed to init MediaPipe: {e}"})
            return

        self.output_queue.put({'type': 'ready', 'generation': self.generation})

        while not self.stop_event.is_set():
            try:
                # 任务格式: {'frame_id', 'timestamp', 'generation'}
                # 图像数据直接从共享内存读取
                task = self.input_queue.get(timeout=0.05)
            except queue.Empty:
                continue

            landmarks = None
            try:
                # 主进程在结果返回前不会再写共享内存，这里拷贝一份后即可放心处理
                frame = frame_buffer.read_copy()
                rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
                mp_image = mp.Image(image_format=mp.ImageFormat.SRGB, data=rgb)

                # VIDEO 模式要求时间戳单调递增，重复帧已在调度器中过滤
                detection_result = detector.detect_for_video(mp_image, int(task['timestamp']))

                if detection_result.face_landmarks:
                    # 只跟踪一张脸
                    landmarks = LandmarkFrame.from_landmarks(
                        task['frame_id'], task['timestamp'], detection_result.face_landmarks[0])
            except Exception as e:
                # 单帧失败也要回复，否则调度器会一直等待
                logger.warning("Processing error in LandmarkProcess: %s", e)

            _put_latest(self.output_queue, {
                'type': 'landmarks',
                'frame_id': task['frame_id'],
                'timestamp': task['timestamp'],
                'generation': task['generation'],
                'landmarks': landmarks,
            })

        # 清理
        detector.close()
        frame_buffer.close()
