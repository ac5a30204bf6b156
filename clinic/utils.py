from __future__ import annotations

import random
import re
from datetime import datetime
from typing import Iterable, List, Optional, Tuple


def normalize_hhmm(x: Optional[str]) -> Optional[str]:
    if x is None:
        return None
    s = str(x).strip()
    if not s:
        return None
    s = s.replace(".", ":")
    parts = s.split(":")
    try:
        h = int(parts[0])
        m = int(parts[1]) if len(parts) > 1 and parts[1] != "" else 0
        if not (0 <= h <= 23 and 0 <= m <= 59):
            return None
        return f"{h:02d}:{m:02d}"
    except ValueError:
        return None


def split_slot(slot: str) -> Tuple[Optional[str], Optional[str]]:
    """'9:00 - 9:30' -> ('09:00', '09:30'); (None, None) if it is not a range."""
    if not isinstance(slot, str) or "-" not in slot:
        return None, None
    a, b = slot.split("-", 1)
    return normalize_hhmm(a), normalize_hhmm(b)


def slot_key(start: str, end: str) -> str:
    return f"{start}-{end}"


def t2min(hhmm: str) -> int:
    h, m = hhmm.split(":")
    return int(h) * 60 + int(m)


def min2t(x: int) -> str:
    return f"{x // 60:02d}:{x % 60:02d}"


def make_slots(step_min: int, ranges: Iterable[Tuple[str, str]]) -> List[Tuple[str, str]]:
    out: List[Tuple[str, str]] = []
    for s, e in ranges:
        cur = t2min(s)
        end = t2min(e)
        while cur + step_min <= end:
            out.append((min2t(cur), min2t(cur + step_min)))
            cur += step_min
    return out


def is_iso_date(s: str) -> bool:
    try:
        datetime.strptime(s, "%Y-%m-%d")
        return True
    except (TypeError, ValueError):
        return False


_NUM_SUFFIX = re.compile(r"(\d+)$")


def next_sequential_id(prefix: str, existing: Iterable[str]) -> str:
    """A1, A2, ... one past the highest numeric suffix already used."""
    highest = 0
    for x in existing:
        if not x.startswith(prefix):
            continue
        m = _NUM_SUFFIX.search(x[len(prefix):])
        if m:
            highest = max(highest, int(m.group(1)))
    return f"{prefix}{highest + 1}"


def random_unique_id(prefix: str, existing: Iterable[str], digits: int = 3, attempts: int = 50) -> str:
    """RR042-style ids; widens the number when the short range is crowded."""
    taken = set(existing)
    while True:
        for _ in range(attempts):
            candidate = f"{prefix}{random.randrange(10 ** digits):0{digits}d}"
            if candidate not in taken:
                return candidate
        digits += 3


def response_message(r) -> str:
    """One-line error text for a failed API response, JSON body or not."""
    try:
        data = r.json()
    except ValueError:
        data = None
    if isinstance(data, dict) and "error" in data:
        return f"{data['error']}: {data.get('detail', '')}"
    return f"{r.status_code}: {r.text}"
