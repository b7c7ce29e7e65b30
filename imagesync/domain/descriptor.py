"""
Planning and run result objects for imagesync.

RepositoryDescriptor is the unit of work produced by the inventory planner:
a batch of tagged images sharing one execution context. RunSummary collects
the counters of one sync run.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .context import ExecutionContext
from .reference import ImageReference


@dataclass(frozen=True)
class RepositoryDescriptor:
    """
    Images of one source repository.

    ``dir_base_path`` is only set for directory sources; the destination
    resolver strips it from each image path to build destination suffixes.
    """
    tagged_images: Tuple[ImageReference, ...]
    context: ExecutionContext = field(default_factory=ExecutionContext)
    dir_base_path: Optional[str] = None

    def __len__(self) -> int:
        return len(self.tagged_images)

    def to_dict(self) -> Dict[str, Any]:
        result = {
            'type': 'repository',
            'images': [ref.image_name() for ref in self.tagged_images],
            'context': self.context.to_dict(),
            'dir_base_path': self.dir_base_path,
        }
        return {k: v for k, v in result.items() if v is not None}


@dataclass
class RunSummary:
    """Counters of one sync run, filled in by the sync executor."""
    images_copied: int = 0
    descriptors_processed: int = 0
    skipped: List[str] = field(default_factory=list)
    details: List[Dict[str, Any]] = field(default_factory=list)

    def record_copy(self, source: ImageReference, destination: ImageReference,
                    dry_run: bool = False) -> None:
        self.images_copied += 1
        self.details.append({
            'from': source.image_name(),
            'to': destination.image_name(),
            'status': 'planned' if dry_run else 'copied',
        })

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': 'summary',
            'images_copied': self.images_copied,
            'descriptors_processed': self.descriptors_processed,
            'skipped': list(self.skipped),
        }
