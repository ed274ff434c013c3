from pathlib import Path
import json
import sys

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from zoia.catalog import ModuleCatalog  # noqa: E402

from builders import catalog_document  # noqa: E402


@pytest.fixture(scope="session")
def catalog() -> ModuleCatalog:
    return ModuleCatalog.from_mapping(catalog_document())


@pytest.fixture
def catalog_path(tmp_path: Path) -> Path:
    path = tmp_path / "ModuleIndex.json"
    path.write_text(json.dumps(catalog_document()), encoding="utf-8")
    return path
