import logging

from config.settings import DISTANCE_DECAY_BASE

logger = logging.getLogger(__name__)


# --- 指数衰减滤波器 (用于虹膜距离平滑) ---
class ExponentialDecayFilter:
    def __init__(self, base=DISTANCE_DECAY_BASE):
        """
        base: 每毫秒保留的比例。越接近 1 越平滑，延迟越高。
        0.99 对应约 69ms 的半衰期。
        """
        self.base = float(base)
        self.value = None

    def decay_factor(self, dt):
        # 时间戳重复或乱序时不做衰减
        if dt <= 0:
            return 0.0
        return 1.0 - self.base ** dt

    def update(self, target, dt):
        """
        target: 本帧的原始距离估计
        dt: 距上一处理帧的时间 (毫秒)
        """
        target = float(target)

        # 首次估计直接采用，没有过渡
        if self.value is None:
            self.value = target
            return self.value

        if dt <= 0:
            logger.debug("Non-monotonic frame clock (dt=%s ms), skipping decay", dt)

        self.value += (target - self.value) * self.decay_factor(dt)
        return self.value
