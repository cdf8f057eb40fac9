from unittest import mock

import cv2
import numpy as np
import pytest
import requests

from conftest import FakeProvider, blank_frame, face, make_config
from verification_service.enrollment import EnrollmentStore
from verification_service.errors import (
    ImageDecodeError,
    InitializationError,
    MultipleFacesDetected,
    NoFaceDetected,
)
from verification_service.types import RunningMode


def test_enroll_stores_reference(config):
    provider = FakeProvider(detections=[[face()]], embedding=np.array([0.5, 0.5, 0.0]))
    store = EnrollmentStore(provider, config)

    embedding = store.enroll(blank_frame())

    assert store.has_reference
    np.testing.assert_array_equal(store.reference, [0.5, 0.5, 0.0])
    assert embedding is store.reference
    assert not store.reference.flags.writeable
    assert provider.modes_seen == [RunningMode.IMAGE]


def test_zero_faces_leaves_reference_unchanged(config):
    provider = FakeProvider(detections=[[face()], []], embedding=np.array([0.1, 0.2, 0.3]))
    store = EnrollmentStore(provider, config)
    store.enroll(blank_frame())
    before = store.reference.tobytes()

    provider.embedding = np.array([9.0, 9.0, 9.0])
    with pytest.raises(NoFaceDetected):
        store.enroll(blank_frame())

    assert store.reference.tobytes() == before
    assert provider.embed_calls == 1


def test_multiple_faces_rejected(config):
    provider = FakeProvider(detections=[[face(), face(x=10)]])
    store = EnrollmentStore(provider, config)
    with pytest.raises(MultipleFacesDetected) as exc_info:
        store.enroll(blank_frame())
    assert exc_info.value.count == 2
    assert not store.has_reference


def test_reenrollment_replaces_reference(config):
    provider = FakeProvider(detections=[[face()], [face()]])
    store = EnrollmentStore(provider, config)
    store.enroll(blank_frame())
    provider.embedding = np.array([0.0, 1.0, 0.0, 0.0])
    store.enroll(blank_frame())
    np.testing.assert_array_equal(store.reference, [0.0, 1.0, 0.0, 0.0])


def test_grayscale_crop_is_embedded():
    config = make_config(grayscale=True, crop_padding=10)
    provider = FakeProvider(detections=[[face(x=100, y=100, size=50)]])
    seen = []
    original = provider._embed
    provider._embed = lambda image: (seen.append(image), original(image))[1]

    image = blank_frame()
    image[:, :, 2] = 200
    EnrollmentStore(provider, config).enroll(image)

    crop = seen[0]
    assert crop.shape == (70, 70, 3)
    assert (crop[..., 0] == crop[..., 1]).all() and (crop[..., 1] == crop[..., 2]).all()


def test_uninitialized_provider(config):
    provider = FakeProvider(detections=[[face()]], ready=False)
    store = EnrollmentStore(provider, config)
    with pytest.raises(InitializationError):
        store.enroll(blank_frame())
    assert not store.has_reference


def test_enroll_bytes(config):
    provider = FakeProvider(detections=[[face()]])
    store = EnrollmentStore(provider, config)
    ok, encoded = cv2.imencode('.png', blank_frame(128))
    assert ok
    store.enroll_bytes(encoded.tobytes())
    assert store.has_reference

    with pytest.raises(ImageDecodeError):
        store.enroll_bytes(b'not an image')


def test_enroll_url_downloads(config):
    provider = FakeProvider(detections=[[face()]])
    store = EnrollmentStore(provider, config)
    _, encoded = cv2.imencode('.jpg', blank_frame(50))

    response = mock.Mock(content=encoded.tobytes())
    response.raise_for_status.return_value = None
    with mock.patch('verification_service.enrollment.requests.get', return_value=response) as get:
        store.enroll_url('http://example.test/me.jpg')

    get.assert_called_once_with('http://example.test/me.jpg', timeout=config.download_timeout)
    assert store.has_reference


def test_enroll_url_http_error(config):
    provider = FakeProvider()
    store = EnrollmentStore(provider, config)
    response = mock.Mock()
    response.raise_for_status.side_effect = requests.exceptions.HTTPError('404')
    with mock.patch('verification_service.enrollment.requests.get', return_value=response):
        with pytest.raises(requests.exceptions.HTTPError):
            store.enroll_url('http://example.test/missing.jpg')


def test_clear(config):
    provider = FakeProvider(detections=[[face()]])
    store = EnrollmentStore(provider, config)
    store.enroll(blank_frame())
    store.clear()
    assert store.reference is None
