# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

"""Local image management and cancelable image pulls."""

from __future__ import annotations

from typing import TYPE_CHECKING

from distrobear._callbacks import IMAGE_PULL_FEED
from distrobear._helpers import sanitize_ref
from distrobear._parser import decode_inspect, parse_local_images, split_tab_rows
from distrobear.errors import Canceled, CommandError, ImageInUse, OperationFailed
from distrobear.types import CommandSpec, OperationResult

if TYPE_CHECKING:
    from distrobear._callbacks import CallbackRegistry
    from distrobear._controller import CancelableOperation
    from distrobear._diagnostics import DiagnosticLog
    from distrobear._executor import CommandExecutor
    from distrobear.resolver import DependencyResolver
    from distrobear.types import LocalImage, StreamChunk

IMAGES_FORMAT = "{{.Repository}}:{{.Tag}}\t{{.Size}}\t{{.ID}}\t{{.Created}}"


def default_archive_name(reference: str) -> str:
    """Suggest a ``.tar`` file name for exporting *reference*."""
    return reference.replace(":", "_").replace("/", "_") + ".tar"


class ImageService:
    """List, delete, save, load and pull images with the detected runtime."""

    def __init__(
        self,
        executor: CommandExecutor,
        resolver: DependencyResolver,
        log: DiagnosticLog,
        callbacks: CallbackRegistry,
        controller: CancelableOperation,
    ) -> None:
        self._executor = executor
        self._resolver = resolver
        self._log = log
        self._callbacks = callbacks
        self._controller = controller

    async def list_images(self) -> list[LocalImage]:
        runtime = await self._resolver.get_container_runtime()
        try:
            result = await self._executor.run(
                CommandSpec(runtime, ("images", "--format", IMAGES_FORMAT))
            )
        except CommandError as exc:
            raise OperationFailed("Failed to list local images", str(exc)) from exc
        return parse_local_images(result.stdout)

    async def delete(self, reference: str) -> None:
        """Remove an image unless a container still uses it.

        If the image cannot be inspected the in-use check is skipped and the
        removal is forced.

        Raises:
            OperationFailed: Wrapping :class:`ImageInUse` or the runtime's error.

        """
        image = sanitize_ref(reference)
        runtime = await self._resolver.get_container_runtime()
        context = f'Failed to delete image "{image}"'
        try:
            try:
                inspect = await self._executor.run(
                    CommandSpec(runtime, ("inspect", image)), log_stdout=False
                )
                image_id = str(decode_inspect(inspect.stdout).get("Id", ""))
            except (CommandError, ValueError) as exc:
                self._log.warn(
                    f'Could not inspect image "{image}", proceeding with deletion.', str(exc)
                )
            else:
                users = await self._containers_using(runtime, image_id)
                if users:
                    raise ImageInUse(image, users)
            await self._executor.run(CommandSpec(runtime, ("rmi", "--force", image)))
        except (CommandError, ImageInUse) as exc:
            raise OperationFailed(context, str(exc)) from exc

    async def _containers_using(self, runtime: str, image_id: str) -> list[str]:
        result = await self._executor.run(
            CommandSpec(runtime, ("ps", "-a", "--format", "{{.Names}}\t{{.ImageID}}"))
        )
        return [
            name
            for name, container_image in split_tab_rows(result.stdout, 2)
            if image_id and container_image and image_id.startswith(container_image)
        ]

    async def export_image(self, reference: str, path: str) -> OperationResult:
        """Write *reference* to a tar archive at *path*."""
        image = sanitize_ref(reference)
        target = sanitize_ref(path, "file path")
        runtime = await self._resolver.get_container_runtime()
        try:
            await self._executor.run(CommandSpec(runtime, ("save", "-o", target, image)))
        except CommandError as exc:
            raise OperationFailed(f'Failed to export image "{image}"', str(exc)) from exc
        return OperationResult(success=True, message=f"Image successfully exported to {target}")

    async def import_image(self, path: str) -> OperationResult:
        """Load images from the tar archive at *path*."""
        source = sanitize_ref(path, "file path")
        runtime = await self._resolver.get_container_runtime()
        try:
            result = await self._executor.run(CommandSpec(runtime, ("load", "-i", source)))
        except CommandError as exc:
            raise OperationFailed(f'Failed to import image from "{source}"', str(exc)) from exc
        return OperationResult(success=True, message=f"Import successful:\n{result.stdout}")

    async def pull(self, reference: str) -> None:
        """Pull *reference*, streaming progress to the ``image-pull-log`` feed.

        The pull is registered with the cancelable-operation controller for
        its whole lifetime.

        Raises:
            Canceled: If :meth:`cancel_pull` stopped the download.
            CommandFailed: If the runtime reported an error.

        """
        image = sanitize_ref(reference, "image address")
        runtime = await self._resolver.get_container_runtime()
        feed = self._callbacks.feed(IMAGE_PULL_FEED)

        def relay(chunk: StreamChunk) -> None:
            feed(chunk.text)

        feed(f"--- Starting pull for: {image} ---\n")
        try:
            await self._controller.run(self._executor, CommandSpec(runtime, ("pull", image)), relay)
        except Canceled:
            feed("\n--- Download canceled. ---\n")
            raise
        except CommandError as exc:
            feed(f"\n--- ERROR: Failed to pull image: {exc} ---\n")
            raise
        feed(f"\n--- Successfully pulled {image}! ---\n")

    def cancel_pull(self) -> OperationResult:
        """Ask the in-flight pull, if any, to stop."""
        if self._controller.active:
            self._callbacks.dispatch(IMAGE_PULL_FEED, "\n--- Canceling download... ---\n")
        return self._controller.cancel()
