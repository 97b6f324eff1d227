"""RequestLogger: one JSON file pair per proxied request."""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime
from pathlib import Path

from ..types import RequestSnapshot, ResponseSnapshot

logger = logging.getLogger(__name__)

_DATE_SUFFIX_RE = re.compile(r"-\d{8}$")
_UNSAFE_CHARS_RE = re.compile(r"[^A-Za-z0-9._-]+")

REQUEST_SUFFIX = ".request.json"
RESPONSE_SUFFIX = ".response.json"


def simplify_model_name(name: str | None) -> str | None:
    """Strip a trailing ``-YYYYMMDD`` date from a model name."""
    if not name:
        return name
    return _DATE_SUFFIX_RE.sub("", name)


class RequestLogger:
    """Persist request/response snapshots as ``<timestamp>[.<model>].{request,response}.json``.

    Disabled when constructed without a directory.  The directory is
    (re)created on every save so deleting it while the proxy runs is
    harmless.  With ``max_files > 0`` only the newest pairs are kept.
    """

    def __init__(self, log_dir: str | Path | None = None, max_files: int = 0) -> None:
        self.enabled = log_dir is not None
        self.log_dir = Path(log_dir).resolve() if log_dir is not None else None
        self.max_files = max_files
        self.request_count = 0
        if self.enabled:
            logger.info("Request logging enabled, saving to %s", self.log_dir)

    def _base_name(self, session_key: str | None, now: datetime) -> str:
        stamp = now.strftime("%Y-%m-%d_%H-%M-%S-%f")
        model = simplify_model_name(session_key)
        if model:
            return f"{stamp}.{_UNSAFE_CHARS_RE.sub('_', model)}"
        return stamp

    def save(
        self,
        request: RequestSnapshot,
        response: ResponseSnapshot,
        *,
        now: datetime | None = None,
    ) -> tuple[Path, Path] | None:
        """Write both snapshots.  Returns the two paths, or None on failure."""
        if not self.enabled or self.log_dir is None:
            return None

        self.request_count += 1
        try:
            self.log_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.warning("Failed to create log directory %s: %s", self.log_dir, e)
            return None

        base = self._base_name(request.session_key, now or datetime.now())
        request_path = self.log_dir / f"{base}{REQUEST_SUFFIX}"
        response_path = self.log_dir / f"{base}{RESPONSE_SUFFIX}"
        try:
            request_path.write_text(
                json.dumps(request.to_dict(), indent=2, ensure_ascii=False, default=str),
                encoding="utf-8",
            )
            response_path.write_text(
                json.dumps(response.to_dict(), indent=2, ensure_ascii=False, default=str),
                encoding="utf-8",
            )
        except OSError as e:
            logger.warning("Failed to save request %d: %s", self.request_count, e)
            return None

        if self.max_files > 0:
            self.prune()
        return request_path, response_path

    def prune(self) -> int:
        """Delete the oldest pairs beyond ``max_files``.  Returns pairs removed."""
        if self.log_dir is None or self.max_files <= 0 or not self.log_dir.is_dir():
            return 0
        requests = sorted(
            self.log_dir.glob(f"*{REQUEST_SUFFIX}"),
            key=lambda p: p.name,
        )
        stale = requests[: max(0, len(requests) - self.max_files)]
        for path in stale:
            base = path.name[: -len(REQUEST_SUFFIX)]
            path.unlink(missing_ok=True)
            (self.log_dir / f"{base}{RESPONSE_SUFFIX}").unlink(missing_ok=True)
        if stale:
            logger.debug("Request log: pruned %d old pairs in %s", len(stale), self.log_dir)
        return len(stale)
