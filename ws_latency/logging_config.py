import logging
import logging.handlers
from pathlib import Path


def setup_logging(
    level: str = "INFO",
    component: str = "ws_latency",
    subdir: str = "default",
    base_dir: str | Path = "logs",
    backup_count: int = 14,
) -> Path:
    """
    Configure diagnostic logging:
      - Console (stderr)
      - <base_dir>/<component>/<subdir>/<component>.log, rolled over at UTC
        midnight; previous days are kept as <component>.log.YYYY-MM-DD

    The frame log written by FrameLogger is separate and not touched here.

    Returns:
      Path to the current log file.
    """

    log_dir = Path(base_dir) / component / subdir
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / f"{component}.log"

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()

    fmt = logging.Formatter("%(asctime)s %(levelname)s %(name)s - %(message)s")
    fh = logging.handlers.TimedRotatingFileHandler(
        log_path,
        when="midnight",
        utc=True,
        backupCount=backup_count,
        encoding="utf-8",
    )
    fh.setFormatter(fmt)
    sh = logging.StreamHandler()
    sh.setFormatter(fmt)
    root.addHandler(fh)
    root.addHandler(sh)
    return log_path
