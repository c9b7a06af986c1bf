import logging
import threading

logger = logging.getLogger(__name__)


class FrameScheduler:
    """
    单飞 (single-flight) 调度: 同一时刻最多一个检测请求在途。
    在途期间到达的新帧直接丢弃，不排队，保证延迟和内存有上界。

    dispatch(frame, timestamp, generation): 把帧交给检测进程
    on_result(result): 检测完成回调 (在结果线程中执行)
    """

    def __init__(self, dispatch, on_result):
        self._dispatch = dispatch
        self._on_result = on_result
        self._lock = threading.Lock()

        self.generation = 0
        self.ready = False
        self.in_flight = False
        self.closed = False
        self.last_timestamp = None

        # 统计
        self.dispatched = 0
        self.dropped = 0
        self.duplicates = 0

    def mark_ready(self, generation=None):
        with self._lock:
            if generation is not None and generation != self.generation:
                return False
            self.ready = True
            return True

    def offer_frame(self, frame, timestamp):
        """
        尝试派发一帧。返回 True 表示已派发。
        """
        with self._lock:
            if self.closed or not self.ready:
                return False
            if self.in_flight:
                self.dropped += 1
                return False
            # 采集设备卡住时会重复给出同一帧
            if timestamp == self.last_timestamp:
                self.duplicates += 1
                return False

            self.in_flight = True
            self.last_timestamp = timestamp
            generation = self.generation

        try:
            self._dispatch(frame, timestamp, generation)
        except Exception:
            with self._lock:
                if generation == self.generation:
                    self.in_flight = False
            raise

        self.dispatched += 1
        return True

    def complete(self, generation, result):
        """
        检测结果返回。关闭后或属于旧 generation 的结果直接丢弃，不改变任何状态。
        """
        with self._lock:
            if self.closed or generation != self.generation:
                logger.debug("Discarding stale result (generation %s, current %s)", generation, self.generation)
                return False
            self.in_flight = False

        self._on_result(result)
        return True

    def reset(self):
        """
        开始新的 generation: 放弃在途请求，等待检测进程重新就绪
        """
        with self._lock:
            self.generation += 1
            self.ready = False
            self.in_flight = False
            self.closed = False
            self.last_timestamp = None
            return self.generation

    def close(self):
        with self._lock:
            self.closed = True
            self.generation += 1
            self.in_flight = False
            self.ready = False

    @property
    def drop_rate(self):
        total = self.dispatched + self.dropped
        if total == 0:
            return 0.0
        return self.dropped / float(total)
