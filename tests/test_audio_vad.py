from array import array

import pytest

from speakingar.audio.mic import SoundDeviceMicSource
from speakingar.audio.vad import EnergyVAD, pcm16_duration, pcm16_rms


def test_pcm16_rms_constant_signal():
    pcm = array("h", [1000, -1000] * 80).tobytes()
    assert pcm16_rms(pcm) == pytest.approx(1000.0)


def test_pcm16_rms_handles_empty_and_odd_bytes():
    assert pcm16_rms(b"") == 0.0
    assert pcm16_rms(b"\x01") == 0.0
    assert pcm16_rms(array("h", [300]).tobytes() + b"\x7f") == pytest.approx(300.0)


def test_pcm16_duration():
    assert pcm16_duration(b"\x00" * 32000, 16000, 1) == pytest.approx(1.0)
    assert pcm16_duration(b"\x00" * 32000, 16000, 2) == pytest.approx(0.5)
    assert pcm16_duration(b"\x00" * 10, 0, 1) == 0.0


def test_energy_vad_threshold():
    vad = EnergyVAD(rms_threshold=500.0)
    assert vad.is_speech(array("h", [600] * 10).tobytes())
    assert not vad.is_speech(array("h", [100] * 10).tobytes())
    with pytest.raises(ValueError):
        EnergyVAD(rms_threshold=-1)


def test_mic_source_validates_arguments():
    with pytest.raises(ValueError):
        SoundDeviceMicSource(chunk_seconds=0)
    with pytest.raises(ValueError):
        SoundDeviceMicSource(channels=3)
