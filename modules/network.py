import logging
import socket

logger = logging.getLogger(__name__)


def _fmt(values):
    return ",".join(f"{v:.2f}" for v in values)


def format_pose_message(snapshot, transforms):
    """
    渲染端协议 (一行文本):
    "x,y,z,lost|0:px,py,pz;1:px,py,pz;2:px,py,pz"
    眼睛位置单位 cm，尚未估计时为 nan；相机位置为场景单位，统一看向原点
    """
    eye = snapshot.eye_position
    if eye is None:
        eye = (float("nan"),) * 3
    head = f"{_fmt(eye)},{int(snapshot.face_lost)}"
    cameras = ";".join(f"{layer_id}:{_fmt(t.position)}" for layer_id, t in sorted(transforms.items()))
    return f"{head}|{cameras}"


class UDPSender:
    def __init__(self, ip, port):
        self.ip = ip
        self.port = port
        self.sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        logger.info("UDP socket initialized. Target: %s:%s", self.ip, self.port)

    def send(self, data_str):
        try:
            self.sock.sendto(data_str.encode('utf-8'), (self.ip, self.port))
        except OSError as e:
            logger.warning("UDP Send Error: %s", e)

    def send_pose(self, snapshot, transforms):
        self.send(format_pose_message(snapshot, transforms))

    def close(self):
        self.sock.close()
