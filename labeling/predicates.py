from __future__ import annotations

from collections.abc import Callable, Iterable

from store.schemas import Sample

PARTITIONS: tuple[str, ...] = ("training", "testing")


def is_unlabeled_image(sample: Sample) -> bool:
    return sample.label == "" and sample.chart_type == "image"


def is_unconverted_video(sample: Sample) -> bool:
    return sample.chart_type == "video" and not sample.is_processing


def has_id_in(ids: Iterable[int]) -> Callable[[Sample], bool]:
    wanted = frozenset(ids)

    def predicate(sample: Sample) -> bool:
        return sample.id in wanted

    return predicate
