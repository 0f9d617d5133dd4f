from pathlib import Path
from typing import List, Optional, Sequence, Union

from image_classifier_workbench.lib import (
    ClassLabel,
    DirectoryAccessError,
    ImageFormat,
    InsufficientClassesError,
    SampleSet,
    Strategy,
    setup_logger,
)

logger = setup_logger(__name__)


def _is_hidden(path: Path) -> bool:
    return path.name.startswith(".")


class ClassCatalog:
    """Discovers class labels and their samples from a resource directory."""

    def __init__(self, image_formats: Optional[Sequence[ImageFormat]] = None):
        self.image_formats = list(image_formats) if image_formats else None

    def _is_sample(self, path: Path) -> bool:
        if _is_hidden(path) or not path.is_file():
            return False
        if self.image_formats is None:
            return True
        return any(image_format.matches(path) for image_format in self.image_formats)

    def _list_directory(self, directory: Path) -> List[Path]:
        try:
            return sorted(directory.iterdir())
        except OSError as e:
            raise DirectoryAccessError(
                f"Could not read directory {directory}: {e}"
            ) from e

    def class_label_directories(self, root: Union[str, Path]) -> List[Path]:
        """Immediate, non-hidden subdirectories of the resource root."""
        root = Path(root)
        if not root.is_dir():
            raise DirectoryAccessError(f"Resource directory {root} does not exist")

        return [
            entry
            for entry in self._list_directory(root)
            if entry.is_dir() and not _is_hidden(entry)
        ]

    def discover(
        self, root: Union[str, Path], strategy: Strategy
    ) -> List[ClassLabel]:
        """
        Scan a resource root and return its class labels in name order.

        Args:
            root: Directory whose subdirectories are class labels
            strategy: Strategy the catalog is discovered for; sets the minimum
                number of classes

        Returns:
            One ClassLabel per class directory, each with its sorted samples

        Raises:
            InsufficientClassesError: fewer class directories than the strategy needs
            DirectoryAccessError: the root or a class directory cannot be read
        """
        class_dirs = self.class_label_directories(root)
        logger.info(
            f"Detected class label directories: {', '.join(d.name for d in class_dirs)}"
        )

        if len(class_dirs) < strategy.min_classes:
            raise InsufficientClassesError(
                found=len(class_dirs),
                required=strategy.min_classes,
                strategy=strategy.value,
            )

        labels: List[ClassLabel] = []
        for class_dir in class_dirs:
            samples = [
                entry for entry in self._list_directory(class_dir) if self._is_sample(entry)
            ]
            logger.debug(f"Class '{class_dir.name}' has {len(samples)} samples")
            labels.append(ClassLabel(name=class_dir.name, samples=tuple(samples)))

        return labels

    @staticmethod
    def sample_set(labels: Sequence[ClassLabel]) -> SampleSet:
        """Convert discovered labels into a mutable label -> samples mapping."""
        return {label.name: list(label.samples) for label in labels}
