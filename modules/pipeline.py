import logging
import multiprocessing
import queue
import threading
import time

from config.settings import SHM_NAME, FACE_LANDMARKER_MODEL
from modules.camera import SourceUnavailable, WebcamVideoStream
from modules.scheduler import FrameScheduler
from modules.shared_mem import SharedFrameBuffer

logger = logging.getLogger(__name__)

STOPPED = "stopped"
STARTING = "starting"
RUNNING = "running"
UNAVAILABLE = "unavailable"


class TrackingPipeline:
    """
    Capture(Thread) -> SharedMem -> LandmarkProcess(Process) -> Result(Thread) -> EyeTracker

    渲染循环不在这里: 它只读取 session.snapshot，永远不等待检测结果。
    """

    def __init__(self, session, camera_index=0, orientation="auto", capture_size=None,
                 model_path=FACE_LANDMARKER_MODEL, shm_name=SHM_NAME,
                 stream_factory=WebcamVideoStream, process_factory=None):
        self.session = session
        self.camera_index = camera_index
        self.orientation = orientation
        self.capture_size = capture_size or (session.config.capture_width, session.config.capture_height)
        self.model_path = model_path
        self.shm_name = shm_name
        self.stream_factory = stream_factory
        self.process_factory = process_factory

        self.status = STOPPED
        self.error = None
        self.latest_frame = None # 仅用于显示
        self.frame_size = None

        self.scheduler = FrameScheduler(self._dispatch, self._on_result)

        self.video_stream = None
        self.frame_buffer = None
        self.input_queue = None
        self.output_queue = None
        self.stop_event = None
        self.process = None
        self._threads = []
        # _release 可能同时来自 stop() 和采集/结果线程里的 _fail
        self._lifecycle_lock = threading.Lock()

    # --- 生命周期 ---
    def start(self):
        if self.status in (STARTING, RUNNING):
            return self

        self.status = STARTING
        self.error = None
        generation = self.scheduler.reset()

        try:
            self._open_resources(generation)
        except SourceUnavailable as e:
            self._fail(str(e))
            return self

        self._threads = [
            threading.Thread(target=self._capture_loop, name="capture-dispatch", daemon=True),
            threading.Thread(target=self._result_loop, name="landmark-results", daemon=True),
        ]
        for t in self._threads:
            t.start()

        logger.info("Pipeline started: Capture(Thread) -> SharedMem -> Process(Process) -> Render Loop")
        return self

    def _open_resources(self, generation):
        width, height = self.capture_size
        self.video_stream = self.stream_factory(src=self.camera_index, width=width, height=height)
        w, h = self.video_stream.frame_w, self.video_stream.frame_h
        self.frame_size = (w, h)

        if self.orientation == "auto":
            self.session.set_portrait(h > w)
        else:
            self.session.set_portrait(self.orientation == "portrait")

        try:
            self.frame_buffer = SharedFrameBuffer(self.shm_name, self.video_stream.frame_shape)
        except OSError as e:
            raise SourceUnavailable(f"Failed to create shared memory: {e}") from e

        # 容量为 1 的队列: 结构上保证单飞
        self.input_queue = multiprocessing.Queue(maxsize=1)
        self.output_queue = multiprocessing.Queue(maxsize=1)
        self.stop_event = multiprocessing.Event()

        self.process = self._create_process(generation)
        try:
            self.process.start()
        except OSError as e:
            raise SourceUnavailable(f"Failed to start landmark process: {e}") from e

        self.video_stream.start()

    def _create_process(self, generation):
        if self.process_factory is not None:
            return self.process_factory(self.input_queue, self.output_queue, self.stop_event,
                                        self.shm_name, self.video_stream.frame_shape,
                                        self.model_path, generation)
        # mediapipe 只在真正启动检测进程时导入
        from trackers.face_mesh import LandmarkProcess
        return LandmarkProcess(self.input_queue, self.output_queue, self.stop_event,
                               self.shm_name, self.video_stream.frame_shape,
                               self.model_path, generation)

    def _fail(self, message):
        if self.scheduler.closed:
            # 已在停止或已失败，不再重复释放
            logger.debug("Ignoring failure during teardown: %s", message)
            return
        with self._lifecycle_lock:
            if self.scheduler.closed:
                return
            logger.error("Head tracking unavailable, using static camera: %s", message)
            self.error = message
            self._release()
            self.status = UNAVAILABLE

    def stop(self):
        if self.status == STOPPED:
            return
        logger.info("Stopping tracking pipeline...")
        # 先关闭调度器，其他线程里的 _fail 看到后直接返回
        self.scheduler.close()
        with self._lifecycle_lock:
            self._release()
        if self.status != UNAVAILABLE:
            self.status = STOPPED

    def _release(self):
        # 先关闭调度器: 之后到达的在途结果不再修改任何状态
        self.scheduler.close()

        if self.stop_event is not None:
            self.stop_event.set()

        current = threading.current_thread()
        for t in self._threads:
            if t is not current:
                t.join(timeout=2.0)
        self._threads = []

        if self.process is not None:
            # 给子进程一点时间退出
            if self.process.is_alive():
                self.process.join(timeout=2.0)
            if self.process.is_alive():
                self.process.terminate()
                self.process.join(timeout=1.0)
            self.process = None

        if self.video_stream is not None:
            self.video_stream.stop()
            self.video_stream = None

        for q in (self.input_queue, self.output_queue):
            if q is not None:
                q.close()
                q.cancel_join_thread()
        self.input_queue = None
        self.output_queue = None

        if self.frame_buffer is not None:
            self.frame_buffer.close() # 只有创建者 unlink
            self.frame_buffer = None

    @property
    def running(self):
        return self.status == RUNNING

    # --- 采集线程 ---
    def _capture_loop(self):
        stream, stop_event = self.video_stream, self.stop_event
        while not stop_event.is_set():
            item = stream.read(timeout=0.05)
            if item is None:
                if stream.stopped:
                    self._fail(f"Camera {self.camera_index} stopped delivering frames")
                    return
                continue

            frame, frame_id, timestamp = item
            self.latest_frame = frame
            try:
                self.scheduler.offer_frame((frame, frame_id), timestamp)
            except (ValueError, OSError, queue.Full) as e:
                # 例如画面尺寸中途改变，或队列已关闭
                self._fail(f"Failed to dispatch frame {frame_id}: {e}")
                return

    def _dispatch(self, item, timestamp, generation):
        frame, frame_id = item
        # 只有没有在途请求时才会走到这里，检测进程此时不会读取共享内存
        self.frame_buffer.write(frame)
        self.input_queue.put_nowait({
            'frame_id': frame_id,
            'timestamp': timestamp,
            'generation': generation,
        })

    # --- 结果线程 ---
    def _result_loop(self):
        output_queue, stop_event = self.output_queue, self.stop_event
        while not stop_event.is_set():
            try:
                message = output_queue.get(timeout=0.05)
            except queue.Empty:
                continue
            except (EOFError, OSError):
                return
            self.handle_message(message)

    def handle_message(self, message):
        kind = message.get('type')
        generation = message.get('generation')

        if kind == 'ready':
            if self.scheduler.mark_ready(generation):
                self.status = RUNNING
                logger.info("Landmark process ready")
        elif kind == 'error':
            if generation == self.scheduler.generation:
                self._fail(message.get('message', 'landmark process failed'))
        elif kind == 'landmarks':
            self.scheduler.complete(generation, message.get('landmarks'))
        else:
            logger.warning("Unknown message from landmark process: %r", kind)

    def _on_result(self, landmark_frame):
        w, h = self.frame_size
        self.session.update(landmark_frame, w, h, time.monotonic() * 1000.0)
