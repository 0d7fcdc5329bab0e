from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, Optional, Tuple


@dataclass(frozen=True)
class ClassDescriptor:
    index: int
    name: str
    color: Tuple[int, int, int]  # RGB
    icon: str
    is_disease: bool = False
    is_plant: bool = False
    description: Optional[str] = None


ASPARAGUS_CLASSES: Tuple[ClassDescriptor, ...] = (
    ClassDescriptor(0, "main stem", (52, 199, 89), "leaf.fill", is_plant=True, description="Healthy main stem"),
    ClassDescriptor(1, "asparagus", (0, 122, 255), "camera.macro", is_plant=True, description="Growing spear"),
    ClassDescriptor(2, "branch", (162, 132, 94), "arrow.branch", is_plant=True, description="Side branch / fork"),
    ClassDescriptor(
        3,
        "brown spot",
        (255, 149, 0),
        "exclamationmark.triangle.fill",
        is_disease=True,
        description="Brown lesions. Treat early.",
    ),
    ClassDescriptor(
        4,
        "stem blight",
        (255, 59, 48),
        "exclamationmark.circle.fill",
        is_disease=True,
        description="Stem die-back. Watch for spread.",
    ),
    ClassDescriptor(
        5,
        "leaf spot",
        (255, 204, 0),
        "exclamationmark.bubble.fill",
        is_disease=True,
        description="Spotted lesions on cladodes. Treatment recommended.",
    ),
)


class ClassTable:
    """
    Read-only lookup keyed by class index. Built once at startup.
    """

    def __init__(self, descriptors: Iterable[ClassDescriptor] = ASPARAGUS_CLASSES):
        table: Dict[int, ClassDescriptor] = {}
        for d in descriptors:
            if d.index in table:
                raise ValueError(f"Duplicate class index: {d.index}")
            if d.is_disease and d.is_plant:
                raise ValueError(f"Class {d.index} cannot be both disease and plant")
            table[d.index] = d
        self._table = table

    def __len__(self) -> int:
        return len(self._table)

    def __iter__(self) -> Iterator[ClassDescriptor]:
        return iter(sorted(self._table.values(), key=lambda d: d.index))

    def __contains__(self, index: object) -> bool:
        return index in self._table

    def get(self, index: int) -> Optional[ClassDescriptor]:
        return self._table.get(index)

    def require(self, index: int) -> ClassDescriptor:
        try:
            return self._table[index]
        except KeyError:
            raise KeyError(f"Unknown class index: {index}") from None

    def is_disease(self, index: int) -> bool:
        d = self._table.get(index)
        return d is not None and d.is_disease

    def is_plant(self, index: int) -> bool:
        d = self._table.get(index)
        return d is not None and d.is_plant

    def names(self) -> Dict[int, str]:
        return {i: d.name for i, d in self._table.items()}


DEFAULT_CLASSES = ClassTable()
