import asyncio
import threading

from backend.runtime import LoopThread


def test_run_and_call_execute_on_loop_thread():
    runtime = LoopThread(name="test-loop")
    try:
        async def which_thread():
            await asyncio.sleep(0)
            return threading.current_thread().name

        assert runtime.run(which_thread(), timeout=5) == "test-loop"
        assert runtime.call(lambda a, b: (a + b, threading.current_thread().name), 1, 2, timeout=5) == (3, "test-loop")
    finally:
        runtime.stop()
    assert not runtime.running


def test_shutdown_runs_cleanup_then_stops_loop():
    runtime = LoopThread(name="test-shutdown")
    done = []

    async def cleanup():
        await asyncio.sleep(0)
        done.append(threading.current_thread().name)

    runtime.shutdown(cleanup())
    runtime.join(timeout=5)

    assert done == ["test-shutdown"]
    assert not runtime.running


def test_shutdown_after_stop_is_harmless():
    runtime = LoopThread(name="test-parado")
    runtime.stop()

    async def cleanup():
        raise AssertionError("não deveria rodar")

    runtime.shutdown(cleanup())
    assert not runtime.running
