import json

import pytest

from modules.camera import CameraProfiles, resolve_camera_settings


def test_profiles_persist_camera(tmp_path):
    profiles = CameraProfiles(str(tmp_path))
    profiles.save_profile(1, fov=72.0, resolution=(320, 240), user_configured=True)
    profiles.last_camera = 1

    reloaded = CameraProfiles(str(tmp_path))
    assert reloaded.last_camera == 1
    assert reloaded.profile(1) == {"fov": 72.0, "resolution": (320, 240), "user_configured": True}


def test_profiles_defaults(tmp_path):
    profiles = CameraProfiles(str(tmp_path / "new"))
    assert profiles.last_camera is None
    assert profiles.profile(0) == {"fov": 60.0, "resolution": (160, 120), "user_configured": False}


def test_profiles_ignore_corrupt_file(tmp_path):
    (tmp_path / "tracking_profiles.json").write_text("{not json", encoding="utf-8")
    profiles = CameraProfiles(str(tmp_path))
    assert profiles.data == {"cameras": {}}


def test_resolve_uses_saved_settings(tmp_path):
    profiles = CameraProfiles(str(tmp_path))
    profiles.save_profile(2, fov=55.0)
    profiles.last_camera = 2

    assert resolve_camera_settings(profiles) == (2, 55.0)


def test_resolve_saves_fov_override(tmp_path):
    profiles = CameraProfiles(str(tmp_path))
    assert resolve_camera_settings(profiles, camera_index=0, fov=70.0) == (0, 70.0)

    data = json.loads((tmp_path / "tracking_profiles.json").read_text(encoding="utf-8"))
    assert data["last_camera"] == 0
    assert data["cameras"]["0"]["fov"] == 70.0
    assert data["cameras"]["0"]["user_configured"] is True


@pytest.mark.parametrize("fov", [0, -10, 180, 200])
def test_resolve_rejects_bad_fov(tmp_path, fov):
    profiles = CameraProfiles(str(tmp_path))
    with pytest.raises(ValueError):
        resolve_camera_settings(profiles, camera_index=0, fov=fov)
