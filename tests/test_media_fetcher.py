from pathlib import Path

import httpx
import pytest

from src.api.errors import ArtifactNotFoundError, MediaFetchError
from src.api.services.media_fetcher import MediaFetcher
from src.api.services.storage import LocalArtifactStore
from src.api.settings import APISettings


def _handler(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/video.mp4":
        return httpx.Response(200, content=b"0123456789")
    if request.url.path == "/boom":
        raise httpx.ConnectError("connection refused", request=request)
    return httpx.Response(404, text="not found")


@pytest.fixture()
def settings(tmp_path):
    return APISettings(data_dir=str(tmp_path / "data"), max_download_bytes=1024)


@pytest.fixture()
def client():
    return httpx.AsyncClient(transport=httpx.MockTransport(_handler))


def _tmp_files(settings):
    tmp_dir = Path(settings.data_dir) / "tmp"
    return list(tmp_dir.iterdir()) if tmp_dir.exists() else []


@pytest.mark.asyncio
async def test_download_yields_temp_file_and_cleans_up(settings, client):
    fetcher = MediaFetcher(settings, client=client)
    async with fetcher.open(url="https://media.example.com/video.mp4") as path:
        assert path.read_bytes() == b"0123456789"
        assert path.suffix == ".mp4"
        assert path.parent.name == "tmp"
    assert not path.exists()


@pytest.mark.asyncio
async def test_http_error_status_is_reported(settings, client):
    fetcher = MediaFetcher(settings, client=client)
    with pytest.raises(MediaFetchError, match="HTTP 404"):
        async with fetcher.open(url="https://media.example.com/missing.mp4"):
            pass
    assert _tmp_files(settings) == []


@pytest.mark.asyncio
async def test_transport_error_is_reported(settings, client):
    fetcher = MediaFetcher(settings, client=client)
    with pytest.raises(MediaFetchError, match="download failed"):
        async with fetcher.open(url="https://media.example.com/boom"):
            pass


@pytest.mark.asyncio
async def test_download_size_cap(tmp_path, client):
    settings = APISettings(data_dir=str(tmp_path), max_download_bytes=4)
    fetcher = MediaFetcher(settings, client=client)
    with pytest.raises(MediaFetchError, match="exceeds 4 bytes"):
        async with fetcher.open(url="https://media.example.com/video.mp4"):
            pass
    assert _tmp_files(settings) == []


@pytest.mark.asyncio
@pytest.mark.parametrize("url", ["file:///etc/passwd", "ftp://host/video.mp4", "video.mp4"])
async def test_rejects_non_http_urls(settings, client, url):
    fetcher = MediaFetcher(settings, client=client)
    with pytest.raises(MediaFetchError, match="unsupported URL scheme"):
        async with fetcher.open(url=url):
            pass


@pytest.mark.asyncio
async def test_object_key_is_pulled_from_store(settings, tmp_path):
    store_root = tmp_path / "store"
    (store_root / "uploads").mkdir(parents=True)
    (store_root / "uploads" / "in.mp4").write_bytes(b"stored media")
    store = LocalArtifactStore(store_root)
    fetcher = MediaFetcher(settings, store_provider=lambda: store)

    async with fetcher.open(object_key="uploads/in.mp4") as path:
        assert path.read_bytes() == b"stored media"

    with pytest.raises(ArtifactNotFoundError):
        async with fetcher.open(object_key="uploads/other.mp4"):
            pass


@pytest.mark.asyncio
async def test_requires_a_source(settings):
    fetcher = MediaFetcher(settings)
    with pytest.raises(MediaFetchError, match="required"):
        async with fetcher.open():
            pass
    with pytest.raises(MediaFetchError, match="no artifact store"):
        async with fetcher.open(object_key="uploads/in.mp4"):
            pass
