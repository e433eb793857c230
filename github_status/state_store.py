from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path


DEFAULT_STATE_PATH = "last"


@dataclass
class LastStatusStore:
    """
    The last-known status, persisted as a bare string in a single file.

    Neither ``load`` nor ``save`` raises; failures are reported to the caller so
    the polling loop can log them and carry on.
    """

    path: Path
    load_error: str | None = field(default=None, init=False)

    def load(self) -> str:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            self.load_error = f"{type(exc).__name__}: {exc}"
            return ""
        self.load_error = None
        return raw.strip()

    def save(self, status: str) -> tuple[bool, str | None]:
        tmp = self.path.with_name(f"{self.path.name}.tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(str(status), encoding="utf-8")
            tmp.replace(self.path)
        except OSError as exc:
            try:
                tmp.unlink(missing_ok=True)
            except OSError:
                pass
            return False, f"{type(exc).__name__}: {exc}"
        return True, None
