import asyncio

import pytest

from app.interview.errors import DeviceUnavailable
from app.services.media_service import MediaResourceManager
from app.system_metrics import get_metric
from conftest import FakeMediaDevice


@pytest.mark.asyncio
async def test_acquire_returns_existing_handle():
    device = FakeMediaDevice()
    media = MediaResourceManager(device)

    first = await media.acquire()
    second = await media.acquire()

    assert first is second
    assert device.opened == 1


@pytest.mark.asyncio
async def test_release_is_idempotent():
    device = FakeMediaDevice()
    media = MediaResourceManager(device)
    handle = await media.acquire()

    assert media.release() is True
    assert media.release() is False
    assert media.release(handle) is False
    assert device.closed == [handle.stream]
    assert media.handle is None


@pytest.mark.asyncio
async def test_release_failure_is_counted_not_raised():
    class _BrokenClose(FakeMediaDevice):
        def close(self, stream):
            raise RuntimeError("device gone")

    media = MediaResourceManager(_BrokenClose())
    await media.acquire()
    before = get_metric("media_release_failures")

    assert media.release() is True
    assert get_metric("media_release_failures") == before + 1
    assert media.handle is None


@pytest.mark.asyncio
async def test_denied_device_raises_device_unavailable():
    media = MediaResourceManager(FakeMediaDevice(fail=DeviceUnavailable("denied")))

    with pytest.raises(DeviceUnavailable):
        await media.acquire()
    assert media.handle is None


@pytest.mark.asyncio
async def test_unexpected_open_error_is_wrapped():
    media = MediaResourceManager(FakeMediaDevice(fail=OSError("no camera")))

    with pytest.raises(DeviceUnavailable):
        await media.acquire()


@pytest.mark.asyncio
async def test_acquire_timeout_raises_device_unavailable():
    device = FakeMediaDevice(delay=0.2)
    media = MediaResourceManager(device, acquire_timeout_sec=0.01)

    with pytest.raises(DeviceUnavailable):
        await media.acquire()
    await asyncio.sleep(0.01)
    assert device.live_streams == 0


@pytest.mark.asyncio
async def test_cancelled_acquire_leaves_no_stream_open():
    device = FakeMediaDevice(delay=0.05)
    media = MediaResourceManager(device)

    task = asyncio.create_task(media.acquire())
    await asyncio.sleep(0.01)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    await asyncio.sleep(0.08)

    assert device.live_streams == 0
    assert media.handle is None
