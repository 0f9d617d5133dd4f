import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Union

from tqdm import tqdm

from image_classifier_workbench.lib import (
    InsufficientSamplesError,
    PairTask,
    SampleSet,
    StagedSample,
    setup_logger,
)

logger = setup_logger(__name__)


def _copy_samples(
    samples: List[StagedSample], destination: Path, label: str
) -> List[Path]:
    """
    Copy samples into a label directory.

    Failed copies and name clashes are logged and skipped; an existing staged
    file is never overwritten.
    """
    destination.mkdir(parents=True, exist_ok=True)
    copied: List[Path] = []
    for sample in tqdm(samples, desc=f"Staging {label}", leave=False):
        target = destination / sample.staged_name
        if target.exists():
            logger.error(
                f"Not staging {sample.source}: {target} was already staged from another sample"
            )
            continue
        try:
            shutil.copy2(sample.source, target)
        except OSError as e:
            logger.error(f"Could not copy {sample.source} to {target}: {e}")
            continue
        copied.append(target)
    return copied


@contextmanager
def staged_samples(
    samples: Dict[str, List[StagedSample]],
    name: str,
    staging_root: Optional[Union[str, Path]] = None,
) -> Iterator[SampleSet]:
    """
    Copy samples into a private labeled-directory tree for the duration of a
    training run.

    The tree is laid out as `<staging dir>/<label>/<staged name>` and is
    deleted when the block exits, whether training succeeded or not.

    Args:
        samples: Label -> samples to stage
        name: Prefix of the staging directory name
        staging_root: Parent directory; defaults to the system temp dir

    Yields:
        The staged sample set (label -> paths inside the staging directory)

    Raises:
        InsufficientSamplesError: a label ended up with no staged files
    """
    if staging_root is not None:
        Path(staging_root).mkdir(parents=True, exist_ok=True)
    staging_dir = Path(
        tempfile.mkdtemp(prefix=f"{name}_", dir=str(staging_root) if staging_root else None)
    )
    logger.debug(f"Staging directory for {name}: {staging_dir}")

    try:
        staged: SampleSet = {}
        for label, label_samples in samples.items():
            copied = _copy_samples(label_samples, staging_dir / label, label)
            if not copied:
                raise InsufficientSamplesError(
                    f"No samples could be staged for label '{label}' of {name}"
                )
            staged[label] = copied
        yield staged
    finally:
        shutil.rmtree(staging_dir, ignore_errors=True)
        logger.debug(f"Removed staging directory {staging_dir}")


def staged_task(
    task: PairTask, staging_root: Optional[Union[str, Path]] = None
):
    """Stage the samples of a PairTask."""
    return staged_samples(task.samples, task.name, staging_root)


def staged_sample_set(
    sample_set: SampleSet,
    name: str,
    staging_root: Optional[Union[str, Path]] = None,
):
    """Stage a plain (balanced) sample set, keeping the file names."""
    return staged_samples(
        {
            label: [StagedSample.keep_name(Path(sample)) for sample in label_samples]
            for label, label_samples in sample_set.items()
        },
        name,
        staging_root,
    )
