import os
import tempfile

# Must be set before media_worker is imported: settings/engine read it at import time
_TMP_DIR = tempfile.mkdtemp(prefix="media-worker-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_DIR, 'test.db')}"
os.environ["ENV"] = "test"
os.environ["WORKER_ID"] = "test-worker"

import pytest  # noqa: E402

import media_worker.models  # noqa: F401,E402
from media_worker.db.base import Base  # noqa: E402
from media_worker.db.session import engine  # noqa: E402


@pytest.fixture(autouse=True)
def _schema():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)
