import threading
import time

import pytest

from conftest import FakeProvider, blank_frame
from verification_service.errors import InitializationError, TransientInferenceError
from verification_service.types import RunningMode


def test_initialization_failure_is_surfaced():
    provider = FakeProvider(ready=False)
    provider.fail_load = True
    with pytest.raises(InitializationError):
        provider.initialize()
    assert not provider.is_ready

    with pytest.raises(InitializationError):
        provider.detect(blank_frame())


def test_set_mode_switches_once():
    provider = FakeProvider()
    provider.mode_switches.clear()
    provider.set_mode(RunningMode.VIDEO)
    provider.set_mode(RunningMode.VIDEO)
    provider.set_mode(RunningMode.IMAGE)
    assert provider.mode_switches == [RunningMode.VIDEO, RunningMode.IMAGE]


def test_backend_errors_become_transient():
    provider = FakeProvider()
    provider.fail_next_detect = RuntimeError('onnx blew up')
    with pytest.raises(TransientInferenceError):
        provider.detect(blank_frame())
    assert provider.detect(blank_frame()) == []


def test_mode_switch_waits_for_in_flight_request():
    provider = FakeProvider()
    provider.detect_gate = threading.Event()
    seen_during_detect = []

    def live_call():
        with provider.use_mode(RunningMode.VIDEO):
            provider.detect(blank_frame())
            seen_during_detect.append(provider.mode)

    worker = threading.Thread(target=live_call)
    worker.start()
    assert provider.detect_started.wait(2)

    switcher = threading.Thread(target=provider.set_mode, args=(RunningMode.IMAGE,))
    switcher.start()
    time.sleep(0.05)
    assert provider.mode is RunningMode.VIDEO

    provider.detect_gate.set()
    worker.join(2)
    switcher.join(2)

    assert seen_during_detect == [RunningMode.VIDEO]
    assert provider.mode is RunningMode.IMAGE
