"""
Tests for obstacle_sensing.capabilities.

Library availability is simulated by patching ``importlib.util.find_spec``
so the tests do not depend on what happens to be installed.

Run with:
    python -m pytest tests/test_capabilities.py -v
"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from obstacle_sensing import capabilities
from obstacle_sensing.capabilities import (
    DeviceClass,
    FeatureSupport,
    detect_device_class,
    probe_capabilities,
    recommend_mode,
    recommended_modes,
    require_supported,
    user_friendly_error,
)
from obstacle_sensing.errors import UnsupportedPlatform
from obstacle_sensing.types import SensingMode


@pytest.fixture
def installed(monkeypatch):
    """Call with a set of module names to make only those importable."""
    def _set(names):
        monkeypatch.setattr(
            capabilities.importlib.util, "find_spec",
            lambda name: object() if name in names else None,
        )
    return _set


def _caps(**supported):
    return {mode: FeatureSupport(supported.get(mode.value, False))
            for mode in SensingMode if mode is not SensingMode.NONE}


class TestDeviceClass:

    @pytest.mark.parametrize("signature, expected", [
        ("Mozilla/5.0 (X11; Linux x86_64) OculusBrowser Quest 3", DeviceClass.HEADSET),
        ("Linux-5.10-aarch64-with-libc android", DeviceClass.MOBILE),
        ("Mozilla/5.0 (iPhone; CPU iPhone OS 17_0)", DeviceClass.MOBILE),
        ("Windows-10-10.0.19045-SP0 AMD64", DeviceClass.DESKTOP),
        ("macOS-14.1-arm64-arm-64bit arm64", DeviceClass.DESKTOP),
        ("Linux-6.1.0-x86_64-with-glibc2.36 x86_64", DeviceClass.DESKTOP),
        ("PlayStation", DeviceClass.UNKNOWN),
    ])
    def test_signatures(self, signature, expected):
        assert detect_device_class(signature) is expected

    def test_default_uses_host_platform(self):
        assert isinstance(detect_device_class(), DeviceClass)


class TestProbe:

    def test_nothing_installed(self, installed, fakes, config):
        installed(set())
        caps = probe_capabilities(config, session_provider=fakes.SessionProvider(supported=False))
        assert not any(s.supported for s in caps.values())
        assert "mediapipe" in caps[SensingMode.HANDS].recommendation
        assert "ultralytics" in caps[SensingMode.MULTI_MODEL].reason

    def test_mediapipe_only(self, installed, fakes, config):
        installed({"mediapipe"})
        caps = probe_capabilities(config, session_provider=fakes.SessionProvider(supported=False))
        assert caps[SensingMode.HANDS].supported
        assert not caps[SensingMode.MULTI_MODEL].supported
        assert not caps[SensingMode.MONOCULAR].supported

    def test_depth_session_from_provider(self, installed, fakes, config):
        installed(set())
        caps = probe_capabilities(config, session_provider=fakes.SessionProvider(supported=True))
        assert caps[SensingMode.DEPTH_SESSION].supported

    def test_provider_exception_is_unsupported(self, installed, fakes, config):
        installed(set())
        provider = fakes.SessionProvider()

        def broken():
            raise RuntimeError("usb")

        provider.is_supported = broken
        caps = probe_capabilities(config, session_provider=provider)
        assert not caps[SensingMode.DEPTH_SESSION].supported
        assert "usb" in caps[SensingMode.DEPTH_SESSION].reason


class TestRecommendation:

    def test_headset_prefers_depth_session(self):
        caps = _caps(depth_session=True, hands=True, monocular=True)
        assert recommended_modes(caps, DeviceClass.HEADSET) == [
            SensingMode.DEPTH_SESSION, SensingMode.HANDS, SensingMode.MONOCULAR,
        ]

    def test_other_devices_prefer_hands(self):
        caps = _caps(depth_session=True, hands=True, multi_model=True)
        assert recommend_mode(caps, DeviceClass.DESKTOP) is SensingMode.HANDS
        assert SensingMode.DEPTH_SESSION not in recommended_modes(caps, DeviceClass.MOBILE)

    def test_fallback_chain(self):
        assert recommend_mode(_caps(monocular=True), DeviceClass.MOBILE) is SensingMode.MONOCULAR
        assert recommend_mode(_caps(), DeviceClass.DESKTOP) is SensingMode.NONE

    def test_require_supported(self):
        caps = _caps(hands=True)
        require_supported("hands", caps)
        require_supported(SensingMode.NONE, caps)
        with pytest.raises(UnsupportedPlatform) as info:
            require_supported(SensingMode.MONOCULAR, caps)
        assert info.value.mode == "monocular"


class TestUserFriendlyError:

    def test_depth_session_message_depends_on_device(self):
        err = RuntimeError("x")
        desktop = user_friendly_error("depth_session", err, DeviceClass.DESKTOP)
        mobile = user_friendly_error("depth_session", err, DeviceClass.MOBILE)
        assert desktop != mobile
        assert "hand tracking" in desktop

    @pytest.mark.parametrize("mode", ["hands", "multi_model", "monocular"])
    def test_every_mode_has_a_message(self, mode):
        msg = user_friendly_error(mode, RuntimeError("internal"), DeviceClass.DESKTOP)
        assert msg and "internal" not in msg

    def test_none_falls_back_to_error_text(self):
        assert user_friendly_error("none", RuntimeError("raw"), DeviceClass.UNKNOWN) == "raw"
