import copy
import os
import tempfile

# keep test runs from writing into the project's output/ log
os.environ.setdefault("LOG_FILE", os.path.join(tempfile.gettempdir(), "dashboard-tests.log"))

import pytest  # noqa: E402

from src.core.config import DEFAULTS  # noqa: E402


@pytest.fixture
def settings(tmp_path):
    s = copy.deepcopy(DEFAULTS)
    s["output_dir"] = str(tmp_path / "output")
    return s
