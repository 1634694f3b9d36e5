import logging
import os
import re
import threading
from pathlib import Path
from typing import Set

log = logging.getLogger("idkspot.blocklist")

_MAC_RE = re.compile(r"^[0-9A-F]{2}(:[0-9A-F]{2}){5}$")


def normalize_mac(raw: str) -> str:
    """
    Canonical form: upper-case, colon separated. Accepts '-' separators.
    """
    if not isinstance(raw, str):
        raise ValueError("invalid_mac")
    mac = raw.strip().upper().replace("-", ":")
    if not _MAC_RE.match(mac):
        raise ValueError("invalid_mac")
    return mac


def is_mac(raw: str) -> bool:
    try:
        normalize_mac(raw)
    except ValueError:
        return False
    return True


class BlockListStore:
    """
    Blocked MACs, one per line in a flat text file. Every read goes to disk so
    edits from another process are seen on the next poll.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = threading.Lock()

    def _read(self) -> Set[str]:
        try:
            raw = self.path.read_text(encoding="utf-8", errors="replace")
        except FileNotFoundError:
            return set()
        except OSError as e:
            log.warning("blocklist_read_failed:%s", e)
            return set()

        out: Set[str] = set()
        for line in raw.splitlines():
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            try:
                out.add(normalize_mac(line))
            except ValueError:
                log.warning("blocklist_bad_line:%s", line[:40])
        return out

    def _ends_with_newline(self) -> bool:
        try:
            with open(self.path, "rb") as f:
                f.seek(0, os.SEEK_END)
                if f.tell() == 0:
                    return True
                f.seek(-1, os.SEEK_END)
                return f.read(1) == b"\n"
        except FileNotFoundError:
            return True

    def all(self) -> Set[str]:
        with self._lock:
            return self._read()

    def contains(self, mac: str) -> bool:
        return normalize_mac(mac) in self.all()

    def add(self, mac: str) -> bool:
        """
        Returns False if the MAC was already present.
        """
        mac = normalize_mac(mac)
        with self._lock:
            if mac in self._read():
                return False
            self.path.parent.mkdir(parents=True, exist_ok=True)
            prefix = "" if self._ends_with_newline() else "\n"
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(prefix + mac + "\n")
                f.flush()
        log.info("blocklist_add", extra={"mac": mac})
        return True

    def remove(self, mac: str) -> bool:
        """
        Rewrites the file without the MAC. Returns False if it was not present.
        """
        mac = normalize_mac(mac)
        with self._lock:
            current = self._read()
            if mac not in current:
                return False
            remaining = [m for m in sorted(current) if m != mac]
            tmp = self.path.with_name(self.path.name + ".tmp")
            with open(tmp, "w", encoding="utf-8") as f:
                f.write("".join(m + "\n" for m in remaining))
                f.flush()
                try:
                    os.fsync(f.fileno())
                except OSError:
                    pass
            os.replace(tmp, self.path)
        log.info("blocklist_remove", extra={"mac": mac})
        return True
