import pytest

from media_archive.config import ArchiveConfig
from media_archive.confirmation import ConfirmationDecision
from media_archive.exceptions import (
    ArchiveDisabled,
    BlobStoreError,
    IndexOutOfRange,
    NoQuotedMessage,
    PermissionDenied,
    UnrecognizedContent,
)
from media_archive.fingerprint import fingerprint
from media_archive.gateway import FilePayload, ImagePayload
from media_archive.models import ItemStatus, QuotedMessage
from tests.fakes import FakeSession, gif, png, quote_of

# Помечаем все тесты в этом файле для работы с asyncio
pytestmark = pytest.mark.asyncio

PNG_URL = "https://cdn.example/a.png"
GIF_URL = "https://cdn.example/b.gif"


@pytest.fixture(autouse=True)
def cdn(fetcher):
    fetcher.responses.update({PNG_URL: png(1), GIF_URL: gif(1)})
    for n in range(2, 10):
        fetcher.responses[f"https://cdn.example/{n}.png"] = png(n)
    return fetcher


async def archive_urls(client, *urls, **session_kwargs):
    session = FakeSession(quote=quote_of(*urls), **session_kwargs)
    return session, await client.archive(session)


async def test_archive_stores_and_returns_each_item(make_client):
    """
    Статичное изображение уходит встроенным, анимированное файлом с сохранённым именем.
    """
    # --- ARRANGE ---
    client = make_client()

    # --- ACT ---
    session, report = await archive_urls(client, PNG_URL, GIF_URL)

    # --- ASSERT ---
    assert report.success_count == 2
    assert [item.status for item in report.items] == [ItemStatus.delivered, ItemStatus.delivered]
    assert report.render().startswith("Successfully archived 2 item(s)")
    assert await client.store.count("group-1") == 2

    image, file = session.sent
    assert isinstance(image, ImagePayload) and image.data == png(1)
    assert isinstance(file, FilePayload)
    assert file.file_name.endswith(".gif")
    assert file.file_name == report.items[1].file_name

    record = await client.store.get_by_index("group-1", 1)
    assert record.is_animated is True
    assert record.uploader_id == "user-1"
    assert record.source_message_id == "msg-1"


async def test_archiving_same_image_twice_reports_duplicate(make_client):
    client = make_client()
    _, first = await archive_urls(client, PNG_URL)

    session, second = await archive_urls(client, PNG_URL)

    outcome = second.items[0]
    assert outcome.status is ItemStatus.duplicate
    assert outcome.record_id == first.items[0].record_id
    assert outcome.message == f"Already in the archive (record #{outcome.record_id})"
    assert second.success_count == 0
    assert not second.render().startswith("Successfully")
    assert session.sent == []
    assert await client.store.count("group-1") == 1


async def test_one_failed_download_does_not_abort_the_batch(make_client, fetcher):
    client = make_client()
    missing = "https://cdn.example/missing.png"

    _, report = await archive_urls(client, missing, PNG_URL)

    assert [item.status for item in report.items] == [ItemStatus.fetch_failed, ItemStatus.delivered]
    assert report.success_count == 1
    assert report.failure_count == 1
    assert fetcher.calls == [missing, PNG_URL]


async def test_element_without_link_is_invalid_source(make_client):
    client = make_client()

    _, report = await archive_urls(client, None, PNG_URL)

    assert report.items[0].status is ItemStatus.invalid_source
    assert report.items[1].status is ItemStatus.delivered


async def test_file_delivery_failure_degrades_to_image(make_client):
    client = make_client()

    session, report = await archive_urls(client, GIF_URL, fail_files=True)

    assert report.items[0].status is ItemStatus.degraded
    assert report.success_count == 1
    assert session.sent == [ImagePayload(data=gif(1), mime_type="image/gif")]
    assert "(fallback)" in report.items[0].message


async def test_delivery_failure_keeps_the_record(make_client):
    client = make_client()

    _, report = await archive_urls(client, PNG_URL, fail_all=True)

    assert report.items[0].status is ItemStatus.delivery_failed
    assert report.success_count == 0
    assert await client.store.count("group-1") == 1


async def test_capacity_from_config_is_enforced(make_client):
    client = make_client(archive=ArchiveConfig(max_capacity=5))

    for n in range(2, 9):
        await archive_urls(client, f"https://cdn.example/{n}.png")

    page = await client.store.list("group-1", page_size=10)
    assert page.total == 5
    assert await client.store.exists("group-1", fingerprint(png(2)).content_hash) is None
    assert await client.store.exists("group-1", fingerprint(png(3)).content_hash) is None
    assert await client.store.exists("group-1", fingerprint(png(4)).content_hash) is not None


async def test_without_quote_or_images(make_client):
    client = make_client()

    with pytest.raises(NoQuotedMessage):
        await client.archive(FakeSession())
    with pytest.raises(UnrecognizedContent):
        await client.archive(FakeSession(quote=QuotedMessage(elements=[{"type": "text", "attrs": {}}])))


async def test_disabled_channel(make_client):
    client = make_client(archive=ArchiveConfig(enabled_channels=["other"]))

    with pytest.raises(ArchiveDisabled):
        await archive_urls(client, PNG_URL)
    with pytest.raises(ArchiveDisabled):
        await client.view(FakeSession())


async def test_convert_sends_back_without_storing(make_client):
    client = make_client(archive=ArchiveConfig(enabled=False))
    session = FakeSession(quote=quote_of(PNG_URL, GIF_URL))

    report = await client.convert(session)

    assert report.success_count == 2
    assert report.render().startswith("Successfully converted 2 item(s)")
    assert await client.store.count("group-1") == 0
    file = session.sent[1]
    assert isinstance(file, FilePayload)
    assert file.file_name.startswith("temp-") and file.file_name.endswith(".gif")


async def test_view_lists_newest_first_with_previews(make_client):
    client = make_client()
    await archive_urls(client, PNG_URL)
    await archive_urls(client, GIF_URL)
    session = FakeSession()

    page = await client.view(session)

    assert page.total == 2
    listing = session.sent[0]
    assert listing.splitlines()[0] == "Media archive (page 1/1, 2 item(s) total)"
    assert "1. [GIF]" in listing and "2. [IMG]" in listing
    assert [p.data for p in session.sent[1:]] == [gif(1), png(1)]


async def test_view_without_previews_and_empty_pages(make_client):
    client = make_client(archive=ArchiveConfig(show_previews=False))
    session = FakeSession()

    await client.view(session)
    await archive_urls(client, PNG_URL)
    await client.view(session)
    await client.view(session, page=2)

    assert session.sent[0] == "The archive is empty, archive some images first"
    assert session.sent[1].startswith("Media archive")
    assert session.sent[2] == "No more items"
    assert len(session.sent) == 3


async def test_send_resends_by_index(make_client):
    client = make_client()
    await archive_urls(client, GIF_URL)
    await archive_urls(client, PNG_URL)
    session = FakeSession()

    newest = await client.send(session, 1)
    oldest = await client.send(session, 2)

    assert newest.status is ItemStatus.delivered
    assert oldest.status is ItemStatus.delivered
    assert isinstance(session.sent[0], ImagePayload)
    assert isinstance(session.sent[1], FilePayload)
    with pytest.raises(IndexOutOfRange):
        await client.send(session, 3)


async def test_send_with_missing_blob(make_client):
    client = make_client()
    await archive_urls(client, PNG_URL)
    record = await client.store.get_by_index("group-1", 1)
    await client.store.blobs.delete(record.blob_path)

    outcome = await client.send(FakeSession(), 1)

    assert outcome.status is ItemStatus.store_failed
    assert "is missing" in outcome.message


async def test_delete_requires_permission(make_client):
    client = make_client()
    await archive_urls(client, GIF_URL)
    await archive_urls(client, PNG_URL)
    kept = await client.store.get_by_index("group-1", 2)

    with pytest.raises(PermissionDenied):
        await client.delete(FakeSession(roles=["trusted"]), 1)
    with pytest.raises(PermissionDenied):
        await client.delete(FakeSession(roles=["owner"], is_direct=True), 1)

    deleted = await client.delete(FakeSession(roles=["admin"]), 1)
    assert deleted.content_hash == fingerprint(png(1)).content_hash
    assert await client.store.count("group-1") == 1
    listed = await client.store.list("group-1")
    assert [r.id for r in listed.records] == [kept.id]


async def test_elevated_user_passes_any_threshold(make_client):
    async def is_operator(user_id: str) -> bool:
        return user_id == "root"

    client = make_client(archive=ArchiveConfig(delete_permission_level=5), elevated_check=is_operator)
    await archive_urls(client, PNG_URL)

    with pytest.raises(PermissionDenied):
        await client.delete(FakeSession(roles=["owner"]), 1)
    await client.delete(FakeSession(user_id="root", is_direct=True), 1)

    assert await client.store.count("group-1") == 0


@pytest.mark.parametrize(
    "reply, decision, remaining",
    [
        ("confirm", ConfirmationDecision.confirmed, 0),
        ("nope", ConfirmationDecision.cancelled, 2),
        (None, ConfirmationDecision.timed_out, 2),
    ],
)
async def test_clear_interactive(make_client, reply, decision, remaining):
    client = make_client()
    await archive_urls(client, PNG_URL, GIF_URL)
    session = FakeSession(roles=["admin"], reply=reply)

    result = await client.clear_interactive(session)

    assert result.decision is decision
    assert result.removed == 2 - remaining
    assert await client.store.count("group-1") == remaining
    assert 'Reply "confirm"' in session.sent[0]
    assert 0 < session.reply_timeouts[0] <= 30_000


async def test_clear_of_empty_channel_asks_nothing(make_client):
    client = make_client()
    session = FakeSession(roles=["owner"], reply="confirm")

    result = await client.clear_interactive(session)

    assert result.decision is None
    assert result.removed == 0
    assert session.sent == []


async def test_clear_requires_permission(make_client):
    client = make_client()

    with pytest.raises(PermissionDenied):
        await client.begin_clear(FakeSession(roles=["trusted"]))


async def test_clear_only_touches_own_channel(make_client):
    client = make_client()
    await archive_urls(client, PNG_URL)
    await archive_urls(client, PNG_URL, channel_id="group-2")

    result = await client.clear_interactive(FakeSession(roles=["admin"], reply="confirm"))

    assert result.removed == 1
    assert await client.store.count("group-2") == 1


async def test_check_connections(make_client):
    client = make_client()

    assert await client.check_connections() == {"database": "ok", "storage": "ok"}


async def test_failed_preview_does_not_stop_the_rest(make_client):
    # --- ARRANGE ---
    client = make_client()
    await archive_urls(client, PNG_URL)
    await archive_urls(client, GIF_URL)
    session = FakeSession(fail_images=1)

    # --- ACT ---
    page = await client.view(session)

    # --- ASSERT ---
    assert page.total == 2
    assert session.sent[0].startswith("Media archive")
    # Первое превью (GIF) отклонено транспортом, второе всё равно отправлено
    assert [p.data for p in session.sent[1:]] == [png(1)]


async def test_check_connections_reports_storage_failure(make_client, monkeypatch):
    client = make_client()

    async def unwritable():
        raise BlobStoreError("Storage root is not writable")

    monkeypatch.setattr(client.store.blobs, "check_connection", unwritable)

    statuses = await client.check_connections()

    assert statuses["database"] == "ok"
    assert statuses["storage"] == "failed: Storage root is not writable"
