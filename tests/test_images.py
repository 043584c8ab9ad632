"""Unit tests for images.py: listing, guarded deletion, save/load and pulls."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest
from distrobear._callbacks import IMAGE_PULL_FEED, CallbackRegistry
from distrobear._controller import NOTHING_TO_CANCEL, CancelableOperation
from distrobear.errors import Canceled, CommandFailed, InvalidName, OperationFailed
from distrobear.images import IMAGES_FORMAT, ImageService, default_archive_name
from distrobear.resolver import DependencyResolver

from .conftest import messages

if TYPE_CHECKING:
    from collections.abc import Callable

    from distrobear._diagnostics import DiagnosticLog

    from .conftest import FakeExecutor


@pytest.fixture
def callbacks() -> CallbackRegistry:
    return CallbackRegistry()


@pytest.fixture
def pull_feed(callbacks: CallbackRegistry) -> list[object]:
    received: list[object] = []
    callbacks.subscribe(IMAGE_PULL_FEED, received.append)
    return received


@pytest.fixture
def service(
    fake: FakeExecutor,
    log: DiagnosticLog,
    callbacks: CallbackRegistry,
    tools: Callable[..., None],
) -> ImageService:
    tools("podman")
    resolver = DependencyResolver(fake, environ={})  # type: ignore[arg-type]
    controller = CancelableOperation()
    return ImageService(fake, resolver, log, callbacks, controller)  # type: ignore[arg-type]


def test_default_archive_name() -> None:
    name = default_archive_name("docker.io/library/alpine:3.19")
    assert name == "docker.io_library_alpine_3.19.tar"


# --- list_images ---


async def test_list_images(service: ImageService, fake: FakeExecutor) -> None:
    listing = "alpine:3.19\t7 MB\tabc\t1 day ago\n<none>:<none>\t1 MB\tx\tnow"
    fake.on("podman", "images", stdout=listing)
    images = await service.list_images()
    assert [(i.repository, i.tag) for i in images] == [("alpine", "3.19")]
    assert fake.commands() == [("podman", "images", "--format", IMAGES_FORMAT)]


async def test_list_images_failure(service: ImageService, fake: FakeExecutor) -> None:
    fake.on("podman", "images", exit_code=125, stderr="storage is corrupt")
    with pytest.raises(OperationFailed, match="Failed to list local images: storage is corrupt"):
        await service.list_images()


# --- delete ---


def _inspect(image_id: str) -> str:
    return json.dumps([{"Id": image_id}])


async def test_delete_refuses_image_in_use(service: ImageService, fake: FakeExecutor) -> None:
    fake.on("podman", "inspect", stdout=_inspect("sha256abcdef0123456789"))
    fake.on("podman", "ps", stdout="dev\tsha256abcdef\nother\t99999999\n")

    with pytest.raises(OperationFailed) as exc_info:
        await service.delete("fedora:39")

    assert 'Failed to delete image "fedora:39"' in str(exc_info.value)
    assert 'being used by container(s): "dev"' in str(exc_info.value)
    assert not any(cmd[1] == "rmi" for cmd in fake.commands())


async def test_delete_unused_image(service: ImageService, fake: FakeExecutor) -> None:
    fake.on("podman", "inspect", stdout=_inspect("sha256abcdef"))
    fake.on("podman", "ps", stdout="other\t99999999\n")
    await service.delete("fedora:39")
    assert fake.commands()[-1] == ("podman", "rmi", "--force", "fedora:39")


async def test_delete_uninspectable_image_is_forced(
    service: ImageService, fake: FakeExecutor, log: DiagnosticLog
) -> None:
    fake.on("podman", "inspect", exit_code=125, stderr="image not known")
    await service.delete("dangling")
    assert fake.commands()[-1] == ("podman", "rmi", "--force", "dangling")
    assert not any(cmd[1] == "ps" for cmd in fake.commands())
    assert any("proceeding with deletion" in m for m in messages(log, "WARN"))


async def test_delete_rmi_failure(service: ImageService, fake: FakeExecutor) -> None:
    fake.on("podman", "inspect", exit_code=125)
    fake.on("podman", "rmi", exit_code=2, stderr="image is locked")
    with pytest.raises(OperationFailed, match='Failed to delete image "x": image is locked'):
        await service.delete("x")


async def test_delete_invalid_reference(service: ImageService, fake: FakeExecutor) -> None:
    with pytest.raises(InvalidName):
        await service.delete("$()")
    assert fake.calls == []


# --- export / import ---


async def test_export_image(service: ImageService, fake: FakeExecutor) -> None:
    result = await service.export_image("alpine:3.19", "/tmp/alpine.tar")
    assert result.success
    assert result.message == "Image successfully exported to /tmp/alpine.tar"
    assert fake.commands() == [("podman", "save", "-o", "/tmp/alpine.tar", "alpine:3.19")]


async def test_export_failure(service: ImageService, fake: FakeExecutor) -> None:
    fake.on("podman", "save", exit_code=125, stderr="no space left on device")
    with pytest.raises(OperationFailed, match="no space left on device"):
        await service.export_image("alpine", "/full/disk.tar")


async def test_import_image(service: ImageService, fake: FakeExecutor) -> None:
    fake.on("podman", "load", stdout="Loaded image: docker.io/library/alpine:3.19")
    result = await service.import_image("/tmp/alpine.tar")
    assert result.message == "Import successful:\nLoaded image: docker.io/library/alpine:3.19"
    assert fake.commands() == [("podman", "load", "-i", "/tmp/alpine.tar")]


# --- pull ---


async def test_pull_streams_progress(
    service: ImageService, fake: FakeExecutor, pull_feed: list[object]
) -> None:
    fake.on("podman", "pull", stdout="Copying blob 1234 done\n")
    await service.pull("alpine:3.19")
    assert pull_feed == [
        "--- Starting pull for: alpine:3.19 ---\n",
        "Copying blob 1234 done\n",
        "\n--- Successfully pulled alpine:3.19! ---\n",
    ]


async def test_pull_canceled(
    service: ImageService, fake: FakeExecutor, pull_feed: list[object]
) -> None:
    fake.on("podman", "pull", exit_code=143)
    with pytest.raises(Canceled):
        await service.pull("fedora:39")
    assert pull_feed[-1] == "\n--- Download canceled. ---\n"
    assert service.cancel_pull().message == NOTHING_TO_CANCEL


async def test_pull_failure(
    service: ImageService, fake: FakeExecutor, pull_feed: list[object]
) -> None:
    fake.on("podman", "pull", exit_code=125, stderr="manifest unknown")
    with pytest.raises(CommandFailed):
        await service.pull("nope:latest")
    assert pull_feed[-1] == "\n--- ERROR: Failed to pull image: manifest unknown ---\n"


def test_cancel_pull_when_idle(service: ImageService, pull_feed: list[object]) -> None:
    result = service.cancel_pull()
    assert result.success is False
    assert result.message == "No active pull process found."
    assert pull_feed == []
