import argparse
import logging
import multiprocessing
import time

from config.settings import VISUALIZE, UDP_IP, UDP_PORT, FACE_LANDMARKER_MODEL, TrackingConfig
from modules.camera import CameraProfiles, resolve_camera_settings
from modules.depth_layers import (RenderMode, get_all_layer_ids, is_valid_layer,
                                  layer_camera_transforms, composite_camera_transform)
from modules.network import UDPSender
from modules.pipeline import TrackingPipeline
from trackers.eye_tracker import EyeTracker

log = logging.getLogger("frustum-parallax")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Head tracked layered parallax")
    parser.add_argument("--camera", type=int, default=None, help="camera index (default: last used)")
    parser.add_argument("--fov", type=float, default=None, help="horizontal FOV in degrees (saved per camera)")
    parser.add_argument("--orientation", choices=["auto", "portrait", "landscape"], default="auto")
    parser.add_argument("--render-mode", choices=[m.value for m in RenderMode], default=RenderMode.LAYERED.value)
    parser.add_argument("--layers", type=int, nargs="*", default=None,
                        help="active layer ids for composite mode (default: all)")
    parser.add_argument("--lost-threshold", type=int, default=None)
    parser.add_argument("--render-fps", type=int, default=None)
    parser.add_argument("--model", default=FACE_LANDMARKER_MODEL, help="face_landmarker.task path")
    parser.add_argument("--udp-ip", default=UDP_IP)
    parser.add_argument("--udp-port", type=int, default=UDP_PORT)
    parser.add_argument("--no-visualize", action="store_true")
    parser.add_argument("--config-dir", default="config")
    parser.add_argument("--log-level", default="INFO")
    return parser.parse_args(argv)


def build_transforms(eye_position, render_mode, active_layers, config=None):
    """
    每个渲染帧的相机参数: 分层模式每层独立相机，合成模式所有活动层共用一个相机
    """
    cfg = config or TrackingConfig()
    scales = (cfg.position_scale, cfg.camera_base_z, cfg.depth_scale)
    if render_mode == RenderMode.COMPOSITE.value:
        shared = composite_camera_transform(eye_position, active_layers, *scales)
        return {layer_id: shared for layer_id in active_layers}
    return layer_camera_transforms(eye_position, *scales)


def render_loop(pipeline, session, udp_sender, visualizer, render_fps, render_mode, active_layers):
    """
    渲染循环: 只读取最近一次完成的快照，从不等待检测结果
    """
    frame_interval = 1.0 / render_fps
    prev_frame_time = 0
    was_lost = False

    while True:
        tick_start = time.monotonic()

        snapshot = session.snapshot
        transforms = build_transforms(snapshot.eye_position, render_mode, active_layers, session.config)

        if snapshot.face_lost != was_lost:
            was_lost = snapshot.face_lost
            if was_lost:
                log.info("Can't find user (%d frames without face)", snapshot.frames_face_hidden)
            else:
                log.info("User found")

        udp_sender.send_pose(snapshot, transforms)

        # 计算 FPS
        fps = 0
        if prev_frame_time > 0:
            delta = tick_start - prev_frame_time
            if delta > 0:
                fps = 1.0 / delta
        prev_frame_time = tick_start

        if visualizer is not None:
            should_stop = visualizer.render(
                pipeline.latest_frame,
                snapshot,
                transforms,
                fps,
                pipeline.scheduler.drop_rate,
                pipeline.status,
            )
            if should_stop:
                break

        remaining = frame_interval - (time.monotonic() - tick_start)
        if remaining > 0:
            time.sleep(remaining)


def main(argv=None):
    # 启用 multiprocessing 支持 (Windows 下必须)
    multiprocessing.freeze_support()

    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    profiles = CameraProfiles(args.config_dir)
    try:
        camera_index, camera_fov = resolve_camera_settings(profiles, args.camera, args.fov)
    except ValueError as e:
        raise SystemExit(str(e))

    capture_w, capture_h = profiles.profile(camera_index)["resolution"]
    config = TrackingConfig(hfov_deg=camera_fov, capture_width=capture_w, capture_height=capture_h)
    if args.lost_threshold is not None:
        config.lost_threshold = args.lost_threshold
    if args.render_fps is not None:
        config.render_fps = args.render_fps

    active_layers = args.layers if args.layers else get_all_layer_ids()
    for layer_id in active_layers:
        if not is_valid_layer(layer_id):
            raise SystemExit(f"Invalid layer ID: {layer_id}")

    print(f"Camera {camera_index}, FOV {camera_fov}°, render mode {args.render_mode}")

    session = EyeTracker(config)
    pipeline = TrackingPipeline(session, camera_index=camera_index,
                                orientation=args.orientation, model_path=args.model)
    udp_sender = UDPSender(args.udp_ip, args.udp_port)

    visualizer = None
    if VISUALIZE and not args.no_visualize:
        from modules.visualizer import Visualizer
        visualizer = Visualizer()

    pipeline.start()

    try:
        render_loop(pipeline, session, udp_sender, visualizer,
                    config.render_fps, args.render_mode, active_layers)
    except KeyboardInterrupt:
        print("Interrupted by user")
    finally:
        # 释放资源
        print("Stopping processes...")
        pipeline.stop()
        udp_sender.close()
        if visualizer is not None:
            visualizer.close()


if __name__ == "__main__":
    main()
