import socket

import pytest

from s3sign.stopper import Stopper
from s3sign.transport import (
    ProgressReader, Transmission, TransmissionAborted, TransportManager, current_transmission
)


def test_stop_aborts_connected_handles():
    stopper = Stopper()
    handles = [Transmission(), Transmission()]
    for handle in handles:
        assert stopper.connect(handle)
    assert len(stopper) == 2
    stopper.stop()
    assert stopper.stopped
    assert all(h.aborted for h in handles)
    assert len(stopper) == 0


def test_stopped_stays_stopped_and_rejects_new_handles():
    stopper = Stopper()
    stopper.stop()
    handle = Transmission()
    assert not stopper.connect(handle)
    assert handle.aborted
    assert stopper.stopped


def test_disconnect():
    stopper = Stopper()
    handle = Transmission()
    stopper.connect(handle)
    stopper.disconnect(handle)
    stopper.stop()
    assert not handle.aborted


def test_manager_tracks_and_releases_handles():
    manager = TransportManager()
    stopper = Stopper()
    with manager.transmission(stopper) as handle:
        assert manager.active_count == 1
        assert len(stopper) == 1
        assert handle.stopper is stopper
    assert manager.active_count == 0
    assert len(stopper) == 0
    manager.close()


def test_stop_all_with_no_handles():
    manager = TransportManager()
    assert manager.stop_all() == 0
    manager.close()


def test_stop_all_aborts_everything():
    manager = TransportManager()
    a = manager.open()
    b = manager.open(Stopper())
    assert manager.stop_all() == 2
    assert a.aborted and b.aborted
    assert manager.active_count == 0
    manager.close()


def test_progress_reader_reports_monotonic_progress():
    seen = []
    data = b'x' * 200000
    reader = ProgressReader(data, lambda loaded, total: seen.append((loaded, total)))
    assert len(reader) == len(data)
    chunks = []
    while True:
        chunk = reader.read(8192 * 10)
        if not chunk:
            break
        chunks.append(chunk)
    assert b''.join(chunks) == data
    assert seen[-1] == (len(data), len(data))
    assert [loaded for loaded, _ in seen] == sorted(loaded for loaded, _ in seen)


def test_progress_reader_stops_when_aborted():
    handle = Transmission()
    reader = ProgressReader(b'abc', handle=handle)
    handle.abort()
    with pytest.raises(TransmissionAborted):
        reader.read()


def test_abort_shuts_down_bound_socket():
    left, right = socket.socketpair()
    try:
        handle = Transmission()
        handle.bind(left)
        handle.abort()
        assert right.recv(1) == b''
    finally:
        left.close()
        right.close()


def test_bind_after_abort_shuts_down_immediately():
    left, right = socket.socketpair()
    try:
        handle = Transmission()
        handle.abort()
        handle.bind(left)
        assert right.recv(1) == b''
    finally:
        left.close()
        right.close()


def test_unbound_socket_survives_abort():
    left, right = socket.socketpair()
    try:
        handle = Transmission()
        handle.bind(left)
        handle.unbind()
        handle.abort()
        left.sendall(b'x')
        assert right.recv(1) == b'x'
    finally:
        left.close()
        right.close()


def test_transmission_is_current_only_while_live():
    manager = TransportManager()
    assert current_transmission() is None
    with manager.transmission() as handle:
        assert current_transmission() is handle
    assert current_transmission() is None
    manager.close()
