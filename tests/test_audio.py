"""Tests for audio capture and recording."""

from __future__ import annotations

from unittest.mock import MagicMock, Mock

import numpy as np
import pytest

from lingovox.audio import (
    AudioDeviceError,
    AudioRecorder,
    LevelMeter,
    RecorderState,
    RecordingError,
    decode_wav,
    initialize_audio_pipeline,
    list_audio_devices,
)


@pytest.fixture
def mock_sounddevice(monkeypatch: pytest.MonkeyPatch):
    """Mock sounddevice module for testing."""
    mock_sd = MagicMock()

    devices = [
        {"name": "Mock Microphone", "max_input_channels": 2, "max_output_channels": 0},
        {"name": "Mock Speakers", "max_input_channels": 0, "max_output_channels": 2},
    ]

    def query_devices_mock(device=None, kind=None):
        if device is None:
            return devices
        return devices[device]

    mock_sd.query_devices = Mock(side_effect=query_devices_mock)
    mock_sd.default.device = [0, 1]
    mock_sd.InputStream.return_value = MagicMock()

    monkeypatch.setattr("lingovox.audio.recorder.sd", mock_sd)
    return mock_sd


def _feed(recorder: AudioRecorder, seconds: float, value: float = 0.1) -> None:
    """Push blocks through the PortAudio callback as the stream would."""
    block = np.full((1600, 1), value, dtype=np.float32)
    for _ in range(int(seconds * 10)):
        recorder._audio_callback(block, block.shape[0], None, None)


def test_list_audio_devices_returns_input_devices(mock_sounddevice):
    devices = list_audio_devices()

    assert devices == [{"name": "Mock Microphone", "index": 0, "channels": 2}]


def test_initialize_audio_pipeline_fails_without_devices(mock_sounddevice):
    mock_sounddevice.query_devices.side_effect = lambda device=None, kind=None: [
        {"name": "Speakers Only", "max_input_channels": 0, "max_output_channels": 2}
    ]

    with pytest.raises(AudioDeviceError, match="No audio input devices detected"):
        initialize_audio_pipeline()


def test_start_creates_stream(mock_sounddevice):
    starts = []
    recorder = AudioRecorder(on_start=lambda: starts.append(True))
    recorder.start()

    assert recorder.is_recording()
    assert recorder.state is RecorderState.RECORDING
    assert starts == [True]
    kwargs = mock_sounddevice.InputStream.call_args.kwargs
    assert kwargs["samplerate"] == 16000
    assert kwargs["channels"] == 1
    assert kwargs["dtype"] == np.float32
    assert kwargs["latency"] == "low"
    mock_sounddevice.InputStream.return_value.start.assert_called_once()


def test_start_twice_opens_one_stream(mock_sounddevice):
    recorder = AudioRecorder()
    recorder.start()
    recorder.start()

    mock_sounddevice.InputStream.assert_called_once()


def test_missing_device_is_reported_not_raised(mock_sounddevice):
    mock_sounddevice.default.device = [None, 1]
    errors = []
    recorder = AudioRecorder(on_error=errors.append)

    recorder.start()

    assert not recorder.is_recording()
    assert recorder.state is RecorderState.ERROR
    assert len(errors) == 1
    assert isinstance(errors[0], AudioDeviceError)
    mock_sounddevice.InputStream.assert_not_called()


def test_insufficient_channels_is_reported(mock_sounddevice):
    errors = []
    recorder = AudioRecorder(channels=4, on_error=errors.append)

    recorder.start()

    assert isinstance(errors[0], AudioDeviceError)
    assert "channels" in str(errors[0])


def test_stream_failure_is_wrapped(mock_sounddevice):
    mock_sounddevice.InputStream.side_effect = OSError("device busy")
    errors = []
    recorder = AudioRecorder(on_error=errors.append)

    recorder.start()

    assert type(errors[0]) is RecordingError
    assert isinstance(errors[0].__cause__, OSError)


def test_stream_start_failure_releases_microphone(mock_sounddevice):
    stream = mock_sounddevice.InputStream.return_value
    stream.start.side_effect = OSError("device unplugged")
    errors = []
    recorder = AudioRecorder(on_error=errors.append)

    recorder.start()

    stream.close.assert_called_once()
    assert recorder.state is RecorderState.ERROR
    assert not recorder.is_recording()
    assert isinstance(errors[0].__cause__, OSError)

    # the failed stream is gone; a retry opens a fresh one
    stream.start.side_effect = None
    recorder.start()
    assert recorder.is_recording()
    assert mock_sounddevice.InputStream.call_count == 2


def test_stop_returns_recording_and_flushes_segment(mock_sounddevice):
    segments = []
    recordings = []
    recorder = AudioRecorder(on_data_available=segments.append, on_stop=recordings.append)
    recorder.start()
    _feed(recorder, 0.5)

    blob = recorder.stop()

    assert blob is not None
    assert recordings == [blob]
    assert len(segments) == 1
    samples, sample_rate, channels = decode_wav(blob.data)
    assert (samples.shape[0], sample_rate, channels) == (8000, 16000, 1)
    assert not recorder.is_recording()
    stream = mock_sounddevice.InputStream.return_value
    stream.stop.assert_called_once()
    stream.close.assert_called_once()


def test_stop_without_audio_emits_nothing(mock_sounddevice):
    segments = []
    recorder = AudioRecorder(on_data_available=segments.append)
    recorder.start()

    assert recorder.stop() is None
    assert segments == []


def test_stop_when_idle_returns_none(mock_sounddevice):
    assert AudioRecorder().stop() is None


def test_timeslice_flushes_segments(mock_sounddevice):
    segments = []
    recorder = AudioRecorder(timeslice=0.2, on_data_available=segments.append)
    recorder.start()
    _feed(recorder, 0.5)

    assert len(segments) == 2
    recorder.stop()
    assert len(segments) == 3
    lengths = [decode_wav(blob.data)[0].shape[0] for blob in segments]
    assert lengths == [3200, 3200, 1600]


def test_frames_listener_receives_blocks(mock_sounddevice):
    meter = LevelMeter()
    recorder = AudioRecorder(on_frames=meter.feed)
    recorder.start()
    _feed(recorder, 0.3, value=0.5)

    assert len(meter.levels()) == 3
    assert meter.peak == pytest.approx(0.5)
    assert recorder.get_buffer_duration() == pytest.approx(0.3)


def test_close_error_is_reported_after_stop(mock_sounddevice):
    mock_sounddevice.InputStream.return_value.stop.side_effect = OSError("glitch")
    errors = []
    recorder = AudioRecorder(on_error=errors.append)
    recorder.start()
    _feed(recorder, 0.1)

    assert recorder.stop() is not None
    assert len(errors) == 1
    assert "did not close cleanly" in str(errors[0])


def test_level_meter_close_ignores_input():
    meter = LevelMeter(window=2)
    for value in (0.1, 0.2, 0.3):
        meter.feed(np.full(10, value, dtype=np.float32))
    assert meter.levels().tolist() == pytest.approx([0.2, 0.3])

    meter.close()
    meter.feed(np.full(10, 0.9, dtype=np.float32))
    assert meter.closed
    assert len(meter.levels()) == 0


def test_recorder_binds_sounddevice_at_import():
    import sounddevice

    from lingovox.audio import recorder as recorder_module

    assert recorder_module.sd is sounddevice
