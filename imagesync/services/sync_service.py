"""
Sync service for imagesync.

Copies every planned image to its destination, one at a time. The first
copy failure ends the run; images copied before it stay in place.
"""

import logging
from dataclasses import dataclass, field
from typing import Generator, List, Optional

from ..domain.context import Deadline, ExecutionContext
from ..domain.descriptor import RepositoryDescriptor, RunSummary
from ..domain.reference import Transport
from ..exit_codes import CopyError, SyncTimeoutError
from ..infra.skopeo_client import CopyEngineError, CopyEngineTimeout, SkopeoClient
from .destination import DestinationResolver

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncProgress:
    """One progress event; ``completed`` is set once the image is in place."""
    message: str
    completed: bool = False

    def __str__(self) -> str:
        return self.message


@dataclass
class SyncOptions:
    """Options for a sync run."""
    destination: str
    destination_transport: Transport
    scoped: bool = False
    remove_signatures: bool = False
    sign_by: Optional[str] = None
    destination_context: ExecutionContext = field(default_factory=ExecutionContext)
    dry_run: bool = False


class SyncExecutor:
    """
    Sequentially copies planned images.

    Example:
        executor = SyncExecutor()
        options = SyncOptions(destination="/media/usb", destination_transport=Transport.DIR)
        summary = RunSummary()

        for progress in executor.sync(descriptors, options, summary):
            if not progress.completed:
                print(progress)

        print(f"Copied {summary.images_copied} images")
    """

    def __init__(self, engine: Optional[SkopeoClient] = None,
                 deadline: Optional[Deadline] = None):
        """
        Initialize SyncExecutor.

        Args:
            engine: Copy engine (SkopeoClient if None)
            deadline: Overall run deadline
        """
        self.engine = engine or SkopeoClient()
        self.deadline = deadline or Deadline()
        self.last_result: Optional[RunSummary] = None

    def sync(
        self,
        descriptors: List[RepositoryDescriptor],
        options: SyncOptions,
        summary: Optional[RunSummary] = None,
    ) -> Generator[SyncProgress, None, RunSummary]:
        """
        Copy all images of ``descriptors``.

        Yields a SyncProgress before each copy and a completed one after
        it, returns the RunSummary.

        Args:
            descriptors: Planned repositories, in order
            options: Destination and copy options
            summary: Counters to update (a new RunSummary if None)

        Raises:
            DestinationError: If a destination cannot be prepared
            CopyError: If the copy engine fails
            SyncTimeoutError: If the run deadline expires
        """
        summary = summary if summary is not None else RunSummary()
        self.last_result = summary
        resolver = DestinationResolver(
            options.destination,
            options.destination_transport,
            scoped=options.scoped,
            dry_run=options.dry_run,
        )

        for descriptor in descriptors:
            total = len(descriptor.tagged_images)
            for counter, ref in enumerate(descriptor.tagged_images, start=1):
                dest_ref = resolver.resolve(ref, descriptor)
                logger.info(
                    f"Copying image tag {counter}/{total} "
                    f"from {ref.image_name()} to {dest_ref.image_name()}"
                )
                yield SyncProgress(
                    f"Copying image tag {counter}/{total}: {ref.image_name()} -> {dest_ref.image_name()}"
                )

                if not options.dry_run:
                    self._copy(ref, dest_ref, descriptor.context, options)
                summary.record_copy(ref, dest_ref, dry_run=options.dry_run)
                done = "Planned" if options.dry_run else "Copied"
                yield SyncProgress(f"{done} {dest_ref.image_name()}", completed=True)

            summary.descriptors_processed += 1

        logger.info(
            f"Synced {summary.images_copied} images from "
            f"{summary.descriptors_processed} sources"
        )
        return summary

    def _copy(self, ref, dest_ref, source_context: ExecutionContext,
              options: SyncOptions) -> None:
        try:
            self.engine.copy(
                ref,
                dest_ref,
                source_context,
                options.destination_context,
                remove_signatures=options.remove_signatures,
                sign_by=options.sign_by,
                timeout=self.deadline.timeout(),
            )
        except CopyEngineTimeout as e:
            raise SyncTimeoutError(f"Error copying tag {ref.image_name()!r}: {e}") from e
        except CopyEngineError as e:
            raise CopyError(f"Error copying tag {ref.image_name()!r}: {e}") from e
