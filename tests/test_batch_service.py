from pathlib import Path

import httpx
import pytest

from photosku.core.errors import (
    BatchValidationError,
    CredentialError,
    LedgerNotFoundError,
    RemoteClientError,
    RemoteServerError,
    StorageError,
)
from photosku.models.media import MediaKind, ProcessStatus
from photosku.services.batch_services import BatchService
from photosku.services.photoroom_client import PhotoRoomClient

SKU = "123456"


def make_service(client, storage, ledgers, **kwargs):
    kwargs.setdefault("max_concurrent", 3)
    kwargs.setdefault("delete_originals", True)
    return BatchService(client, storage, ledgers, **kwargs)


async def upload(storage, name, data, content_type="image/png"):
    return await storage.save_upload(SKU, name, content_type, data)


@pytest.mark.asyncio
async def test_end_to_end_videos_first(fake_client, storage, ledgers):
    img_a = await upload(storage, "front.png", b"A")
    clip = await upload(storage, "clip.mov", b"V", "video/quicktime")
    img_b = await upload(storage, "back.jpg", b"B", "image/jpeg")
    service = make_service(fake_client, storage, ledgers)

    ledger = await service.process(SKU, [img_a, clip, img_b])

    names = [(r.final_name, r.status, r.original_name) for r in ledger.results]
    assert names == [
        ("123456_001.mov", ProcessStatus.SKIPPED, "clip.mov"),
        ("123456_002.jpg", ProcessStatus.DONE, "front.png"),
        ("123456_003.jpg", ProcessStatus.DONE, "back.jpg"),
    ]
    assert [r.id for r in ledger.results] == [clip.id, img_a.id, img_b.id]
    assert ledger.success is True
    assert (ledger.total_files, ledger.successful, ledger.skipped, ledger.failed) == (3, 2, 1, 0)
    # the video is never sent to PhotoRoom
    assert sorted(fake_client.calls) == [b"A", b"B"]


@pytest.mark.asyncio
async def test_done_items_write_output_and_drop_original(fake_client, storage, ledgers):
    item = await upload(storage, "front.png", b"A")
    service = make_service(fake_client, storage, ledgers)

    ledger = await service.process(SKU, [item])

    result = ledger.results[0]
    assert Path(result.output_location).name == "123456_001.jpg"
    assert Path(result.output_location).read_bytes() == b"edited:A"
    assert result.preview_url == "/api/v1/images/123456/123456_001.jpg"
    assert result.error is None
    assert not Path(item.source_location).exists()


@pytest.mark.asyncio
async def test_originals_kept_when_deletion_disabled(fake_client, storage, ledgers):
    item = await upload(storage, "front.png", b"A")
    service = make_service(fake_client, storage, ledgers, delete_originals=False)

    await service.process(SKU, [item])

    assert Path(item.source_location).read_bytes() == b"A"


@pytest.mark.asyncio
@pytest.mark.parametrize("cap,count", [(1, 4), (3, 10), (5, 7)])
async def test_peak_concurrency_never_exceeds_cap(fake_client, storage, ledgers, cap, count):
    items = [await upload(storage, f"{i}.png", f"img-{i}".encode()) for i in range(count)]
    fake_client.delay = 0.05
    service = make_service(fake_client, storage, ledgers, max_concurrent=cap)

    ledger = await service.process(SKU, items)

    assert fake_client.peak <= cap
    assert fake_client.peak == min(cap, count)
    assert len(ledger.results) == count
    assert {r.id for r in ledger.results} == {i.id for i in items}


@pytest.mark.asyncio
async def test_sequence_numbers_unique_and_padded(fake_client, storage, ledgers):
    items = [await upload(storage, f"{i}.png", f"img-{i}".encode()) for i in range(12)]
    service = make_service(fake_client, storage, ledgers)

    ledger = await service.process(SKU, items)

    sequences = [r.sequence for r in ledger.results]
    assert sequences == list(range(1, 13))
    assert ledger.results[9].final_name == "123456_010.jpg"
    # numbered in submission order within the image partition
    assert [r.original_name for r in ledger.results] == [f"{i}.png" for i in range(12)]


@pytest.mark.asyncio
async def test_one_failure_does_not_block_others(fake_client, storage, ledgers):
    good = await upload(storage, "good.png", b"good")
    bad = await upload(storage, "bad.png", b"bad")
    later = await upload(storage, "later.jpg", b"later", "image/jpeg")
    fake_client.failures[b"bad"] = RemoteServerError("PhotoRoom server error: boom", status=500)
    service = make_service(fake_client, storage, ledgers, max_concurrent=2)

    ledger = await service.process(SKU, [good, bad, later])

    by_id = {r.id: r for r in ledger.results}
    assert by_id[good.id].status == ProcessStatus.DONE
    assert by_id[later.id].status == ProcessStatus.DONE
    failed = by_id[bad.id]
    assert failed.status == ProcessStatus.ERROR
    assert failed.error == "PhotoRoom server error: boom"
    assert failed.error_code == "remote_server_error"
    assert failed.final_name == "123456_002.png"
    assert failed.output_location is None and failed.preview_url is None
    # failed originals stay untouched
    assert Path(bad.source_location).read_bytes() == b"bad"
    assert ledger.success is False


@pytest.mark.asyncio
async def test_missing_source_is_recorded_as_storage_error(fake_client, storage, ledgers):
    present = await upload(storage, "present.png", b"here")
    missing = await upload(storage, "missing.png", b"gone")
    Path(missing.source_location).unlink()
    service = make_service(fake_client, storage, ledgers)

    ledger = await service.process(SKU, [present, missing])

    by_id = {r.id: r for r in ledger.results}
    assert by_id[present.id].status == ProcessStatus.DONE
    assert by_id[missing.id].status == ProcessStatus.ERROR
    assert by_id[missing.id].error_code == "storage_error"
    assert fake_client.calls == [b"here"]


@pytest.mark.asyncio
async def test_credential_error_aborts_remaining_windows(fake_client, storage, ledgers):
    items = [await upload(storage, f"{i}.png", f"img-{i}".encode()) for i in range(5)]
    fake_client.failures[b"img-0"] = CredentialError("Invalid PhotoRoom API key: nope", status=401)
    service = make_service(fake_client, storage, ledgers, max_concurrent=2)

    with pytest.raises(CredentialError) as exc_info:
        await service.process(SKU, items)

    # only the first window reached PhotoRoom
    assert sorted(fake_client.calls) == [b"img-0", b"img-1"]

    ledger = exc_info.value.ledger
    assert len(ledger.results) == 5
    statuses = [r.status for r in ledger.results]
    assert statuses == [ProcessStatus.ERROR, ProcessStatus.DONE] + [ProcessStatus.ERROR] * 3
    assert all(r.error_code == "unauthorized" for r in ledger.results if r.status == ProcessStatus.ERROR)
    assert [r.sequence for r in ledger.results] == [1, 2, 3, 4, 5]
    # the ledger is stored even though the call failed
    assert ledgers.read(SKU).failed == 4


@pytest.mark.asyncio
async def test_non_retryable_client_error_recorded(fake_client, storage, ledgers):
    item = await upload(storage, "weird.png", b"weird")
    fake_client.failures[b"weird"] = RemoteClientError("PhotoRoom API error: unsupported image", status=400)
    service = make_service(fake_client, storage, ledgers)

    ledger = await service.process(SKU, [item])

    assert ledger.results[0].error_code == "remote_client_error"


@pytest.mark.asyncio
async def test_validation_happens_before_remote_calls(fake_client, storage, ledgers):
    item = await upload(storage, "a.png", b"A")
    service = make_service(fake_client, storage, ledgers)

    with pytest.raises(BatchValidationError):
        await service.process(SKU, [])
    with pytest.raises(BatchValidationError):
        await service.process("", [item])
    with pytest.raises(BatchValidationError):
        await service.process("../123", [item])
    with pytest.raises(BatchValidationError):
        await service.process(SKU, [item, item])

    assert fake_client.calls == []
    assert not ledgers.exists(SKU)


@pytest.mark.asyncio
async def test_ledger_is_persisted(fake_client, storage, ledgers):
    item = await upload(storage, "a.png", b"A")
    service = make_service(fake_client, storage, ledgers)

    ledger = await service.process(SKU, [item])

    stored = ledgers.read(SKU)
    assert stored.batch_id == ledger.batch_id
    assert stored.results == ledger.results


@pytest.mark.asyncio
async def test_retry_only_reprocesses_failures(fake_client, storage, ledgers):
    ok = await upload(storage, "ok.png", b"ok")
    flaky = await upload(storage, "flaky.png", b"flaky")
    clip = await upload(storage, "clip.mp4", b"V", "video/mp4")
    fake_client.failures[b"flaky"] = RemoteServerError("PhotoRoom server error: down", status=503)
    service = make_service(fake_client, storage, ledgers)

    first = await service.process(SKU, [ok, flaky, clip])
    failed = first.failed_results()[0]
    assert failed.final_name == "123456_003.png"

    fake_client.failures.clear()
    fake_client.calls.clear()
    second = await service.retry_failed(SKU)

    assert fake_client.calls == [b"flaky"]
    retried = {r.id: r for r in second.results}[flaky.id]
    assert retried.status == ProcessStatus.DONE
    assert retried.sequence == failed.sequence
    assert retried.final_name == "123456_003.jpg"
    assert retried.original_name == "flaky.png"
    assert [r.id for r in second.results] == [r.id for r in first.results]
    assert second.success is True
    assert ledgers.read(SKU).failed == 0


@pytest.mark.asyncio
async def test_retry_with_nothing_failed_makes_no_calls(fake_client, storage, ledgers):
    item = await upload(storage, "a.png", b"A")
    service = make_service(fake_client, storage, ledgers)
    await service.process(SKU, [item])
    fake_client.calls.clear()

    ledger = await service.retry_failed(SKU)

    assert fake_client.calls == []
    assert ledger.successful == 1


@pytest.mark.asyncio
async def test_retry_without_ledger(fake_client, storage, ledgers):
    service = make_service(fake_client, storage, ledgers)
    with pytest.raises(LedgerNotFoundError):
        await service.retry_failed(SKU)


@pytest.mark.asyncio
async def test_observer_sees_real_transitions(fake_client, storage, ledgers):
    image = await upload(storage, "a.png", b"A")
    video = await upload(storage, "v.mp4", b"V", "video/mp4")
    events = []
    service = make_service(fake_client, storage, ledgers)

    await service.process(SKU, [image, video], observer=lambda sku, item, status, result: events.append(
        (item.id, status)
    ))

    assert [s for i, s in events if i == video.id] == [ProcessStatus.QUEUED, ProcessStatus.SKIPPED]
    assert [s for i, s in events if i == image.id] == [
        ProcessStatus.QUEUED, ProcessStatus.PROCESSING, ProcessStatus.DONE
    ]
    # videos settle before any image starts
    assert events.index((video.id, ProcessStatus.SKIPPED)) < events.index((image.id, ProcessStatus.PROCESSING))


@pytest.mark.asyncio
async def test_broken_observer_does_not_break_batch(fake_client, storage, ledgers):
    item = await upload(storage, "a.png", b"A")
    service = make_service(fake_client, storage, ledgers)

    def observer(*args):
        raise RuntimeError("listener gone")

    ledger = await service.process(SKU, [item], observer=observer)
    assert ledger.successful == 1


@pytest.mark.asyncio
async def test_real_client_retries_inside_batch(storage, ledgers):
    responses = [
        httpx.Response(500, json={"error": "boom"}),
        httpx.Response(429, json={"error": "slow"}),
        httpx.Response(200, content=b"jpeg"),
    ]

    def handler(request):
        return responses.pop(0)

    async def no_sleep(delay):
        return None

    client = PhotoRoomClient(
        api_key="test-key",
        transport=httpx.MockTransport(handler),
        sleep=no_sleep,
        max_retries=3,
    )
    item = await upload(storage, "a.png", b"A")
    service = make_service(client, storage, ledgers)

    ledger = await service.process(SKU, [item])

    assert ledger.results[0].status == ProcessStatus.DONE
    assert Path(ledger.results[0].output_location).read_bytes() == b"jpeg"


@pytest.mark.asyncio
async def test_kind_comes_from_upload_content_type(storage):
    item = await upload(storage, "weird-name.jpg", b"V", "video/mp4")
    assert item.kind == MediaKind.VIDEO


@pytest.mark.asyncio
async def test_failed_image_without_extension_keeps_image_name(fake_client, storage, ledgers):
    item = await upload(storage, "IMG_0001", b"noext", "image/jpeg")
    fake_client.failures[b"noext"] = RemoteServerError("PhotoRoom server error: boom", status=500)
    service = make_service(fake_client, storage, ledgers)

    ledger = await service.process(SKU, [item])

    result = ledger.results[0]
    assert result.kind == MediaKind.IMAGE
    assert result.final_name == "123456_001.jpg"


@pytest.mark.asyncio
async def test_ledger_write_failure_still_returns_results(fake_client, storage, ledgers, monkeypatch):
    item = await upload(storage, "a.png", b"A")
    service = make_service(fake_client, storage, ledgers)

    def broken_write(ledger):
        raise StorageError("disk full")

    monkeypatch.setattr(ledgers, "write", broken_write)

    ledger = await service.process(SKU, [item])

    assert ledger.successful == 1
    assert Path(ledger.results[0].output_location).read_bytes() == b"edited:A"
    # originals are only dropped once the ledger is stored
    assert Path(item.source_location).exists()
    assert not ledgers.exists(SKU)


@pytest.mark.asyncio
async def test_retry_ledger_write_failure_keeps_originals(fake_client, storage, ledgers, monkeypatch):
    item = await upload(storage, "a.png", b"A")
    fake_client.failures[b"A"] = RemoteServerError("PhotoRoom server error: down", status=503)
    service = make_service(fake_client, storage, ledgers)
    await service.process(SKU, [item])
    fake_client.failures.clear()

    def broken_write(ledger):
        raise StorageError("disk full")

    monkeypatch.setattr(ledgers, "write", broken_write)

    ledger = await service.retry_failed(SKU)

    assert ledger.successful == 1
    assert Path(item.source_location).exists()
