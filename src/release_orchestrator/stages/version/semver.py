from __future__ import annotations

import re
from dataclasses import dataclass, replace
from functools import total_ordering

SNAPSHOT_SUFFIX = "-SNAPSHOT"

_version_re = re.compile(r"^(\d+(?:\.\d+)*)(?:-([0-9A-Za-z][0-9A-Za-z.\-]*))?$")

# Qualifiers Maven treats as the plain release.
_RELEASE_ALIASES = frozenset({"final", "ga", "release"})


def is_snapshot(version: str) -> bool:
    return version.endswith(SNAPSHOT_SUFFIX)


def _cmp_identifiers(a: str, b: str) -> int:
    """
    Compare pre-release qualifiers the semver way: split on '.' and '-',
    numeric identifiers compare numerically and sort before alphanumeric ones.
    """
    pa = re.split(r"[.\-]", a)
    pb = re.split(r"[.\-]", b)
    for x, y in zip(pa, pb):
        if x == y:
            continue
        xd, yd = x.isdigit(), y.isdigit()
        if xd and yd:
            return -1 if int(x) < int(y) else 1
        if xd != yd:
            return -1 if xd else 1
        return -1 if x.lower() < y.lower() else (1 if x.lower() > y.lower() else 0)
    return (len(pa) > len(pb)) - (len(pa) < len(pb))


@total_ordering
@dataclass(frozen=True, slots=True)
class Version:
    """
    MAJOR.MINOR.PATCH[.N...][-qualifier][-SNAPSHOT]

    Ordering:
      - numeric parts compared with zero padding (1.0 == 1.0.0)
      - a qualified version sorts before the plain release (1.0.0-rc1 < 1.0.0)
      - a snapshot sorts before the same version without it
      - release aliases (1.0.0-final, 1.0.0-GA) equal the plain release but
        keep their spelling when rendered
    """

    release: tuple[int, ...]
    qualifier: str | None = None
    snapshot: bool = False

    @classmethod
    def parse(cls, text: str) -> "Version":
        raw = text.strip()
        snapshot = is_snapshot(raw)
        if snapshot:
            raw = raw[: -len(SNAPSHOT_SUFFIX)]
        m = _version_re.match(raw)
        if not m:
            raise ValueError(f"Unsupported version syntax: {text!r}")
        qualifier = m.group(2)
        release = tuple(int(p) for p in m.group(1).split("."))
        return cls(release=release, qualifier=qualifier, snapshot=snapshot)

    def __str__(self) -> str:
        s = ".".join(str(p) for p in self.release)
        if self.qualifier:
            s += f"-{self.qualifier}"
        if self.snapshot:
            s += SNAPSHOT_SUFFIX
        return s

    @property
    def _rank_qualifier(self) -> str | None:
        q = self.qualifier
        if q is None or q.lower() in _RELEASE_ALIASES:
            return None
        return q

    def _padded(self, n: int) -> tuple[int, ...]:
        return self.release + (0,) * (n - len(self.release))

    def compare(self, other: "Version") -> int:
        n = max(len(self.release), len(other.release))
        a, b = self._padded(n), other._padded(n)
        if a != b:
            return -1 if a < b else 1

        qa, qb = self._rank_qualifier, other._rank_qualifier
        if qa != qb:
            if qa is None:
                return 1
            if qb is None:
                return -1
            c = _cmp_identifiers(qa, qb)
            if c:
                return c

        if self.snapshot != other.snapshot:
            return -1 if self.snapshot else 1
        return 0

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self.compare(other) == 0

    def __lt__(self, other: "Version") -> bool:
        return self.compare(other) < 0

    def __hash__(self) -> int:
        rel = self.release
        while len(rel) > 1 and rel[-1] == 0:
            rel = rel[:-1]
        q = self._rank_qualifier
        return hash((rel, q.lower() if q else None, self.snapshot))

    def _bump(self, index: int) -> "Version":
        parts = list(self._padded(max(3, len(self.release))))
        parts[index] += 1
        for i in range(index + 1, len(parts)):
            parts[i] = 0
        return replace(self, release=tuple(parts), qualifier=None)

    def next_patch(self) -> "Version":
        return self._bump(2)

    def next_minor(self) -> "Version":
        return self._bump(1)

    def next_major(self) -> "Version":
        return self._bump(0)

    def as_release(self) -> "Version":
        return replace(self, snapshot=False)
