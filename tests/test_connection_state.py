import threading

from ixnet.connection_state import ConnectionState


def test_new_state_is_not_terminated():
    assert ConnectionState().terminated is False


def test_terminate():
    state = ConnectionState()
    state.terminate()
    assert state.terminated is True


def test_ids_are_numeric_and_increasing():
    first = ConnectionState()
    second = ConnectionState()
    assert first.id.isdigit() and second.id.isdigit()
    assert int(second.id) > int(first.id)


def test_compute_id_assigns_fresh_id():
    state = ConnectionState()
    old = state.id
    state.compute_id()
    assert int(state.id) > int(old)


def test_ids_unique_across_threads():
    states = []
    lock = threading.Lock()

    def worker():
        created = [ConnectionState() for _ in range(50)]
        with lock:
            states.extend(created)

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(states) == 200
    assert all(state.id.isdigit() for state in states)
    ids = {int(state.id) for state in states}
    assert len(ids) == 200

    later = ConnectionState()
    assert int(later.id) > max(ids)