#!/usr/bin/env python3
"""
Tests for the photo asset cache (download + reapply)
"""

import os
import sys
import asyncio
import tempfile
from pathlib import Path

from aiohttp import web
from aiohttp import test_utils

sys.path.insert(0, os.path.dirname(__file__))

from assets import AssetCache, guess_extension
from errors import DownloadError, MissingAssetError
from fake_remote import FakeRemote
from locks import LockStore

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"0" * 2048


def _image_app() -> web.Application:
    async def image(request):
        return web.Response(body=PNG_BYTES, content_type="image/png")

    async def moved(request):
        raise web.HTTPFound("/img/group.png")

    async def missing(request):
        return web.Response(status=404, text="gone")

    app = web.Application()
    app.router.add_get("/img/group.png", image)
    app.router.add_get("/redirect", moved)
    app.router.add_get("/missing.jpg", missing)
    return app


def test_guess_extension():
    """Extension comes from the URL path, case-insensitive, default jpg"""
    assert guess_extension("https://cdn/x/photo.PNG") == "png"
    assert guess_extension("https://cdn/x/photo.webp?size=large") == "webp"
    assert guess_extension("https://cdn/x/photo.jpeg#frag") == "jpeg"
    assert guess_extension("https://cdn/x/photo") == "jpg"
    assert guess_extension("https://cdn/x/photo.gif") == "jpg"


async def test_fetch_writes_deterministic_path():
    """A 200 response lands at photos/<threadID>.<ext>"""
    print("🔄 Testing photo download...")
    with tempfile.TemporaryDirectory() as tmp:
        cache = AssetCache(Path(tmp) / "photos", LockStore(Path(tmp) / "locks.json"), FakeRemote())
        async with test_utils.TestServer(_image_app()) as server:
            path = await cache.fetch(str(server.make_url("/img/group.png")), "100")
        assert path == Path(tmp) / "photos" / "100.png"
        assert path.read_bytes() == PNG_BYTES
    print("   ✅ Photo download working")


async def test_fetch_follows_redirects():
    """Redirects are followed transparently"""
    with tempfile.TemporaryDirectory() as tmp:
        cache = AssetCache(Path(tmp) / "photos", LockStore(Path(tmp) / "locks.json"), FakeRemote())
        async with test_utils.TestServer(_image_app()) as server:
            path = await cache.fetch(str(server.make_url("/redirect")), "100")
        assert path.name == "100.jpg"
        assert path.read_bytes() == PNG_BYTES


async def test_fetch_non_200_raises_and_keeps_previous_file():
    """Non-200 responses raise DownloadError and leave no partial file"""
    with tempfile.TemporaryDirectory() as tmp:
        photos = Path(tmp) / "photos"
        photos.mkdir()
        previous = photos / "100.jpg"
        previous.write_bytes(b"old")
        cache = AssetCache(photos, LockStore(Path(tmp) / "locks.json"), FakeRemote())
        async with test_utils.TestServer(_image_app()) as server:
            try:
                await cache.fetch(str(server.make_url("/missing.jpg")), "100")
                raise AssertionError("Expected DownloadError")
            except DownloadError as e:
                assert "404" in str(e)
        assert previous.read_bytes() == b"old"
        assert sorted(p.name for p in photos.iterdir()) == ["100.jpg"]


async def test_fetch_transport_error_raises():
    """Connection failures surface as DownloadError"""
    with tempfile.TemporaryDirectory() as tmp:
        cache = AssetCache(Path(tmp) / "photos", LockStore(Path(tmp) / "locks.json"), FakeRemote(),
                           timeout_seconds=2)
        try:
            await cache.fetch("http://127.0.0.1:9/nothing.png", "100")
            raise AssertionError("Expected DownloadError")
        except DownloadError:
            pass


async def test_reapply_uses_cached_file():
    """reapply() pushes the cached image"""
    with tempfile.TemporaryDirectory() as tmp:
        remote = FakeRemote()
        store = LockStore(Path(tmp) / "locks.json")
        cached = Path(tmp) / "100.jpg"
        cached.write_bytes(b"img")
        store.set_group_pic("100", str(cached), "https://cdn/100.jpg")
        await AssetCache(Path(tmp), store, remote).reapply("100")
        assert remote.calls_named("change_group_image") == [(str(cached), "100")]


async def test_reapply_missing_file_raises():
    """reapply() raises MissingAssetError when the file or the lock is gone"""
    with tempfile.TemporaryDirectory() as tmp:
        remote = FakeRemote()
        store = LockStore(Path(tmp) / "locks.json")
        cache = AssetCache(Path(tmp), store, remote)
        store.set_group_pic("100", str(Path(tmp) / "deleted.jpg"), "https://cdn/100.jpg")
        for thread_id in ("100", "200"):
            try:
                await cache.reapply(thread_id)
                raise AssertionError("Expected MissingAssetError")
            except MissingAssetError as e:
                assert e.thread_id == thread_id
        assert remote.calls == []


async def main():
    """Run all tests"""
    print("🧪 Asset Cache Tests")
    print("=" * 50)
    tests = [
        test_guess_extension,
        test_fetch_writes_deterministic_path,
        test_fetch_follows_redirects,
        test_fetch_non_200_raises_and_keeps_previous_file,
        test_fetch_transport_error_raises,
        test_reapply_uses_cached_file,
        test_reapply_missing_file_raises,
    ]
    passed = 0
    for test in tests:
        try:
            if asyncio.iscoroutinefunction(test):
                await test()
            else:
                test()
            passed += 1
        except Exception as e:
            print(f"   ❌ {test.__name__} failed: {e}")
    print(f"\nTests: {passed}/{len(tests)} passed")
    return 0 if passed == len(tests) else 1


if __name__ == '__main__':
    sys.exit(asyncio.run(main()))
