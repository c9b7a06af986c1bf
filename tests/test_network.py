import socket

from modules.depth_layers import layer_camera_transforms, composite_camera_transform
from modules.network import UDPSender, format_pose_message
from trackers.eye_tracker import EyeTracker

from conftest import make_landmark_frame


def test_message_before_first_estimate():
    snapshot = EyeTracker().snapshot
    msg = format_pose_message(snapshot, layer_camera_transforms(None))
    head, cameras = msg.split("|")
    assert head == "nan,nan,nan,0"
    assert cameras == "0:0.00,0.00,4.20;1:0.00,0.00,5.00;2:0.00,0.00,5.60"


def test_message_with_eye_position_and_lost_flag():
    tracker = EyeTracker()
    tracker.update(make_landmark_frame(), 160, 120, now_ms=0.0)
    for i in range(4):
        tracker.update(None, 160, 120, now_ms=i + 1.0)

    snapshot = tracker.snapshot
    msg = format_pose_message(snapshot, layer_camera_transforms(snapshot.eye_position))
    head, cameras = msg.split("|")
    x, y, z, lost = head.split(",")

    assert float(y) == -20.0
    assert lost == "1"
    assert len(cameras.split(";")) == 3


def test_composite_message_repeats_shared_camera():
    shared = composite_camera_transform((0.0, 0.0, 0.0), [0, 2])
    msg = format_pose_message(EyeTracker().snapshot, {0: shared, 2: shared})
    assert msg.endswith("|0:0.00,0.00,4.90;2:0.00,0.00,4.90")


def test_udp_sender_delivers_pose():
    receiver = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    receiver.bind(("127.0.0.1", 0))
    receiver.settimeout(2.0)
    port = receiver.getsockname()[1]

    sender = UDPSender("127.0.0.1", port)
    try:
        snapshot = EyeTracker().snapshot
        sender.send_pose(snapshot, layer_camera_transforms(None))
        data, _ = receiver.recvfrom(1024)
    finally:
        sender.close()
        receiver.close()

    assert data.decode("utf-8").startswith("nan,nan,nan,0|")
