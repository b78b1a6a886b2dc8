import httpx
import pytest

from conftest import media_url

from blogarchiver.config import ArchiverConfig
from blogarchiver.downloader import MediaDownloader
from blogarchiver.models import DownloadOutcome, MediaJob
from blogarchiver.storage import media_filename


class BrokenStream(httpx.SyncByteStream):
    def __iter__(self):
        yield b"partial bytes"
        raise httpx.ReadError("connection reset by peer")


@pytest.fixture
def collection(tmp_path, api_cfg):
    c = ArchiverConfig(api=api_cfg, output_root=tmp_path).collection("blog")
    c.media_dir.mkdir(parents=True)
    return c


@pytest.fixture
def downloader(api_cfg, transport):
    with MediaDownloader(api_cfg, transport=transport) as d:
        yield d


def test_downloads_to_media_dir(fake, downloader, collection):
    fake.media[media_url("tumblr_abc_1280.jpg")] = b"\xff\xd8jpeg"
    outcome = downloader.download(MediaJob(collection, media_url("tumblr_abc_1280.jpg")))
    assert outcome is DownloadOutcome.DOWNLOADED
    assert (collection.media_dir / "tumblr_abc_1280.jpg").read_bytes() == b"\xff\xd8jpeg"


def test_existing_file_is_left_untouched(fake, downloader, collection):
    dest = collection.media_dir / "song.mp3"
    dest.write_bytes(b"already here")
    fake.media[media_url("song.mp3")] = b"new content"

    outcome = downloader.download(MediaJob(collection, media_url("song.mp3")))

    assert outcome is DownloadOutcome.EXISTS
    assert dest.read_bytes() == b"already here"
    assert fake.media_requests() == []


def test_http_error_leaves_no_file(fake, downloader, collection):
    outcome = downloader.download(MediaJob(collection, media_url("gone.gif")))
    assert outcome is DownloadOutcome.FAILED
    assert not (collection.media_dir / "gone.gif").exists()
    assert len(fake.media_requests()) == 1


def test_interrupted_stream_removes_partial_file(api_cfg, collection):
    transport = httpx.MockTransport(lambda r: httpx.Response(200, stream=BrokenStream()))
    with MediaDownloader(api_cfg, transport=transport) as d:
        outcome = d.download(MediaJob(collection, media_url("clip.mp4")))
    assert outcome is DownloadOutcome.FAILED
    assert not (collection.media_dir / "clip.mp4").exists()


def test_transport_error_is_not_raised(api_cfg, collection):
    def handler(request):
        raise httpx.ConnectTimeout("timed out", request=request)

    with MediaDownloader(api_cfg, transport=httpx.MockTransport(handler)) as d:
        outcome = d.download(MediaJob(collection, media_url("x.png")))
    assert outcome is DownloadOutcome.FAILED
    assert not (collection.media_dir / "x.png").exists()


def test_missing_media_dir_is_a_failure(fake, downloader, tmp_path, api_cfg):
    c = ArchiverConfig(api=api_cfg, output_root=tmp_path).collection("nodir")
    fake.media[media_url("a.jpg")] = b"a"
    assert downloader.download(MediaJob(c, media_url("a.jpg"))) is DownloadOutcome.FAILED


def test_url_without_file_name_is_invalid(fake, downloader, collection):
    assert downloader.download(MediaJob(collection, "https://media.test/")) is DownloadOutcome.INVALID
    assert fake.media_requests() == []


def test_rerun_after_failure_downloads_again(fake, downloader, collection):
    job = MediaJob(collection, media_url("later.jpg"))
    assert downloader.download(job) is DownloadOutcome.FAILED
    fake.media[job.url] = b"now available"
    assert downloader.download(job) is DownloadOutcome.DOWNLOADED
    assert downloader.download(job) is DownloadOutcome.EXISTS


@pytest.mark.parametrize(
    "url, name",
    [
        ("https://64.media.tumblr.com/abc/tumblr_x_1280.jpg", "tumblr_x_1280.jpg"),
        ("https://va.media.tumblr.com/tumblr_v.mp4?x=1#frag", "tumblr_v.mp4"),
        ("https://a.tumblr.com/tumblr_a.mp3/", ""),
        ("https://a.tumblr.com", ""),
        ("", ""),
    ],
)
def test_media_filename(url, name):
    assert media_filename(url) == name


def test_malformed_host_is_invalid_and_leaves_no_file(fake, downloader, collection):
    outcome = downloader.download(MediaJob(collection, "https://xn--.com/c.jpg"))
    assert outcome is DownloadOutcome.INVALID
    assert not (collection.media_dir / "c.jpg").exists()
    assert fake.media_requests() == []


class ExplodingStream(httpx.SyncByteStream):
    def __iter__(self):
        yield b"half"
        raise RuntimeError("decoder blew up")


def test_unexpected_error_still_removes_file(api_cfg, collection):
    transport = httpx.MockTransport(lambda r: httpx.Response(200, stream=ExplodingStream()))
    with MediaDownloader(api_cfg, transport=transport) as d:
        with pytest.raises(RuntimeError):
            d.download(MediaJob(collection, media_url("odd.webm")))
    assert not (collection.media_dir / "odd.webm").exists()


def test_default_config_reads_env(monkeypatch):
    monkeypatch.setenv("TUMBLR_API_KEY", "from-env")
    with MediaDownloader() as d:
        assert d.cfg.api_key == "from-env"
