import logging
from multiprocessing import shared_memory

import numpy as np

logger = logging.getLogger(__name__)


class SharedFrameBuffer:
    """
    主进程与检测进程之间传递图像的共享内存。
    只有在没有在途检测请求时主进程才会写入，检测进程收到任务后立即拷贝一份。
    """

    def __init__(self, name, shape, dtype=np.uint8, create=True):
        self.name = name
        self.shape = tuple(shape)
        self.dtype = np.dtype(dtype)
        self.create = create

        size = int(np.prod(self.shape)) * self.dtype.itemsize

        if create:
            try:
                self.shm = shared_memory.SharedMemory(create=True, size=size, name=self.name)
            except FileExistsError:
                # 上次异常退出残留的同名共享内存: 先 unlink 再重建
                logger.warning("Shared memory %s already exists, recreating", self.name)
                stale = shared_memory.SharedMemory(name=self.name)
                stale.close()
                stale.unlink()
                self.shm = shared_memory.SharedMemory(create=True, size=size, name=self.name)
        else:
            self.shm = shared_memory.SharedMemory(name=self.name)

        self.array = np.ndarray(self.shape, dtype=self.dtype, buffer=self.shm.buf)

    def write(self, frame):
        if frame.shape != self.shape:
            raise ValueError(f"Frame shape {frame.shape} does not match buffer shape {self.shape}")
        np.copyto(self.array, frame)

    def read_copy(self):
        return self.array.copy()

    def close(self):
        if self.shm is None:
            return
        # 释放 numpy 视图后才能关闭底层 buffer
        self.array = None
        self.shm.close()
        if self.create:
            try:
                self.shm.unlink()
            except FileNotFoundError:
                pass
        self.shm = None
