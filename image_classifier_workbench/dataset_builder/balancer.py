from typing import List, Optional, Sequence, TypeVar

import numpy as np

from image_classifier_workbench.lib import (
    InsufficientSamplesError,
    SampleSet,
    setup_logger,
)

logger = setup_logger(__name__)

T = TypeVar("T")


def sample_without_replacement(
    items: Sequence[T], count: int, rng: np.random.Generator
) -> List[T]:
    """Shuffle the items and take the first `count` of them."""
    if count >= len(items):
        count = len(items)
    order = rng.permutation(len(items))[:count]
    return [items[i] for i in order]


class DatasetBalancer:
    """Truncates every class to the size of the smallest one."""

    def __init__(
        self,
        rng: Optional[np.random.Generator] = None,
        random_state: Optional[int] = None,
    ):
        self.rng = rng if rng is not None else np.random.default_rng(random_state)

    def balance(self, sample_set: SampleSet, should_equalize: bool) -> SampleSet:
        """
        Derive a balanced copy of a sample set.

        Args:
            sample_set: Mapping of label -> samples
            should_equalize: When False the sample set is returned unchanged

        Returns:
            A sample set where every label holds exactly min_count samples,
            drawn uniformly without replacement

        Raises:
            InsufficientSamplesError: the sample set is empty or a class has
                no samples
        """
        if not should_equalize:
            return sample_set

        if not sample_set:
            raise InsufficientSamplesError("Cannot balance an empty sample set")

        empty = [label for label, samples in sample_set.items() if len(samples) == 0]
        if empty:
            raise InsufficientSamplesError(
                f"Classes without samples cannot be balanced: {', '.join(empty)}"
            )

        min_count = min(len(samples) for samples in sample_set.values())
        logger.info(
            f"Balancing {len(sample_set)} classes to {min_count} samples each"
        )

        balanced: SampleSet = {}
        for label, samples in sample_set.items():
            if len(samples) == min_count:
                balanced[label] = list(samples)
            else:
                balanced[label] = sample_without_replacement(
                    samples, min_count, self.rng
                )
                logger.debug(
                    f"Class '{label}' truncated from {len(samples)} to {min_count} samples"
                )

        return balanced
