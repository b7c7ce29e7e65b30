"""
Destination resolution for imagesync.

Maps each source image onto a destination address below the destination
root. With ``scoped`` the full source name is kept (registry host and
namespace for registry sources, the path below the base directory for
directory sources); without it only the last path component is used, so
several source registries can be merged into one flat destination.
"""

import errno
import logging
import os
import posixpath

from ..domain.descriptor import RepositoryDescriptor
from ..domain.reference import (
    DEFAULT_TAG,
    ImageReference,
    InvalidReferenceError,
    Transport,
    parse_directory_reference,
    parse_docker_reference,
)
from ..exit_codes import DestinationError

logger = logging.getLogger(__name__)


def destination_suffix(ref: ImageReference, descriptor: RepositoryDescriptor,
                       scoped: bool) -> str:
    """
    Part of the destination address derived from the source image.

    Never returns an empty string for a directory source: when the image
    path cannot be made relative to the base path (or is the base path
    itself) the base path's own leaf name is used.
    """
    if ref.transport is Transport.DOCKER:
        suffix = ref.docker_reference()
    else:
        base = (descriptor.dir_base_path or '').rstrip('/')
        path = ref.path or ''
        suffix = ''
        if base and path.startswith(base + '/'):
            suffix = path[len(base):]
        if not suffix.strip('/'):
            suffix = posixpath.basename(base) if base else posixpath.basename(path)

    if not scoped:
        suffix = posixpath.basename(suffix.rstrip('/'))
    return suffix


class DestinationResolver:
    """
    Resolves destination references for one sync run.

    Example:
        resolver = DestinationResolver("/media/usb", Transport.DIR, scoped=True)
        dest = resolver.resolve(src_ref, descriptor)
    """

    def __init__(self, destination: str, transport: Transport,
                 scoped: bool = False, dry_run: bool = False):
        """
        Args:
            destination: Destination root (registry namespace or directory)
            transport: Destination transport
            scoped: Keep the full source name below the root
            dry_run: Do not create destination directories
        """
        self.destination = destination
        self.transport = transport
        self.scoped = scoped
        self.dry_run = dry_run

    def target(self, ref: ImageReference, descriptor: RepositoryDescriptor) -> str:
        """Destination root joined with the source-derived suffix."""
        suffix = destination_suffix(ref, descriptor, self.scoped)
        return posixpath.normpath(posixpath.join(self.destination, suffix.lstrip('/')))

    def resolve(self, ref: ImageReference, descriptor: RepositoryDescriptor) -> ImageReference:
        """
        Compute the destination reference for ``ref``.

        Directory destinations must not exist yet; they are created
        (with parents) unless running dry.

        Raises:
            DestinationError: If the destination cannot be used
        """
        target = self.target(ref, descriptor)
        logger.debug(f"Destination for transport {self.transport.value!r}: {target}")

        if self.transport is Transport.DOCKER:
            try:
                dest_ref = parse_docker_reference(target)
            except InvalidReferenceError as e:
                raise DestinationError(
                    f"Cannot obtain a valid image reference for transport 'docker' "
                    f"and reference {target!r}: {e}"
                ) from e
            if dest_ref.is_name_only:
                dest_ref = dest_ref.with_tag(DEFAULT_TAG)
            return dest_ref

        self._prepare_directory(target)
        return parse_directory_reference(target)

    def _prepare_directory(self, target: str) -> None:
        try:
            os.lstat(target)
        except FileNotFoundError:
            pass
        except OSError as e:
            raise DestinationError(f"Destination directory could not be used: {e}") from e
        else:
            raise DestinationError(f"Refusing to overwrite destination directory {target!r}")

        if self.dry_run:
            return
        try:
            os.makedirs(target, mode=0o755)
        except OSError as e:
            if e.errno == errno.EEXIST:
                raise DestinationError(
                    f"Refusing to overwrite destination directory {target!r}"
                ) from e
            raise DestinationError(f"Error creating directory for image {target}: {e}") from e
