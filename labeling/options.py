"""Run options for a labeling job and the helpers that normalise them."""
from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from app.errors import ConfigurationError, InputError

ImageQuality = Literal["auto", "low", "high"]
IMAGE_QUALITIES: tuple[str, ...] = ("auto", "low", "high")


@dataclass
class LabelingOptions:
    """What to ask the model and what to do with the answers."""

    prompt: str
    disable_labels: list[str] = field(default_factory=list)
    image_quality: ImageQuality = "auto"
    limit: int | None = None
    concurrency: int = 1
    auto_convert_videos: bool = False
    frames_per_second: int = 10
    data_ids: list[int] | None = None
    propose_actions_job_id: int | None = None
    verbose: bool = False

    def __post_init__(self) -> None:
        if not self.prompt.strip():
            raise ConfigurationError("--prompt must not be empty")
        if self.image_quality not in IMAGE_QUALITIES:
            raise ConfigurationError(
                f"--image-quality should be one of {', '.join(IMAGE_QUALITIES)}"
            )
        if self.concurrency < 1:
            raise ConfigurationError("--concurrency should be at least 1")
        if self.limit is not None and self.limit < 0:
            raise ConfigurationError("--limit should not be negative")
        if self.auto_convert_videos and self.frames_per_second < 1:
            raise ConfigurationError("--extract-frames-per-second should be at least 1")

    @property
    def dry_run(self) -> bool:
        return self.propose_actions_job_id is not None

    def should_disable(self, label: str) -> bool:
        return label in self.disable_labels


def expand_prompt(raw: str) -> str:
    # the prompt arrives with literal "\n" sequences when passed through a shell
    return raw.replace("\\n", "\n")


def parse_disable_labels(raw: str | None) -> list[str]:
    return [part.strip().lower() for part in (raw or "").split(",") if part.strip()]


def parse_flag(raw: str | None) -> bool:
    return (raw or "").strip().lower() in {"1", "true"}


def load_data_ids(path: Path) -> list[int]:
    """Read a JSON array of numeric sample IDs."""
    if not path.exists():
        raise InputError(f'"{path}" does not exist (via --data-ids-file)')
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise InputError(
            f'Failed to parse "{path}" (via --data-ids-file), should be a JSON array with numbers: {exc}'
        ) from exc
    if not isinstance(payload, list):
        raise InputError(
            f'Failed to parse "{path}" (via --data-ids-file): content of the file is not an array'
        )
    ids: list[int] = []
    for index, value in enumerate(payload):
        if (
            isinstance(value, bool)
            or not isinstance(value, (int, float))
            or (isinstance(value, float) and not math.isfinite(value))
            or value != int(value)
        ):
            raise InputError(
                f'Failed to parse "{path}" (via --data-ids-file): the value at index {index} is not numeric'
            )
        ids.append(int(value))
    return ids


def describe_ids(ids: list[int]) -> str:
    if len(ids) < 6:
        return ", ".join(str(sample_id) for sample_id in ids)
    return f"{', '.join(str(sample_id) for sample_id in ids[:5])} and {len(ids) - 5} others"
