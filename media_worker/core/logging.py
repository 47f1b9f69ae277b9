import logging
import sys

_FORMAT = "%(asctime)s %(levelname)s [%(worker_id)s] %(name)s: %(message)s"


class _WorkerIdFilter(logging.Filter):
    def __init__(self, worker_id: str) -> None:
        super().__init__()
        self.worker_id = worker_id

    def filter(self, record: logging.LogRecord) -> bool:
        record.worker_id = self.worker_id
        return True


def configure_logging(worker_id: str, level: int | str = logging.INFO) -> None:
    """
    Install a single stderr handler on the root logger.
    Every line carries the worker identity so interleaved logs from
    several worker processes stay readable.
    """
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S%z"))
    handler.addFilter(_WorkerIdFilter(worker_id))

    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)
    root.addHandler(handler)
    root.setLevel(level)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
