import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from store.schemas import Sample  # noqa: E402


@pytest.fixture
def make_sample():
    def factory(sample_id: int, **fields) -> Sample:
        fields.setdefault("filename", f"sample-{sample_id}.jpg")
        fields.setdefault("chartType", "image")
        return Sample.model_validate({"id": sample_id, **fields})

    return factory
