from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

from .structs import IO_PAGE, Connection, Header, Module


@dataclass(frozen=True)
class Page:
    number: int
    name: str | None  # user-assigned, if any
    modules: Tuple[Module, ...]  # ordered by grid position

    @property
    def is_io_page(self) -> bool:
        return self.number == IO_PAGE

    def modules_at(self, position: int) -> List[Module]:
        """Modules covering a grid cell.  Modules may overlap, so this can
        return more than one."""
        return [module for module in self.modules if module.occupies(position)]


@dataclass(frozen=True)
class Patch:
    """A fully decoded patch.

    ``modules`` keeps declaration order (connections index into it);
    ``pages`` groups the same modules by page number.
    """

    name: str
    byte_count: int
    modules: Tuple[Module, ...]
    pages: Tuple[Page, ...]
    connections: Tuple[Connection, ...]
    page_names: Tuple[str, ...]
    star_count: int = 0
    has_color_table: bool = False

    @classmethod
    def assemble(
        cls,
        header: Header,
        modules: Sequence[Module],
        connections: Sequence[Connection],
        page_names: Sequence[str],
        *,
        star_count: int = 0,
        has_color_table: bool = False,
    ) -> "Patch":
        by_page: Dict[int, List[Module]] = {}
        for module in modules:
            by_page.setdefault(module.page, []).append(module)

        pages = tuple(
            Page(
                number=number,
                name=page_names[number] if number < len(page_names) else None,
                modules=tuple(sorted(by_page[number], key=lambda m: m.grid_position)),
            )
            for number in sorted(by_page)
        )
        return cls(
            name=header.name,
            byte_count=header.byte_count,
            modules=tuple(modules),
            pages=pages,
            connections=tuple(connections),
            page_names=tuple(page_names),
            star_count=star_count,
            has_color_table=has_color_table,
        )

    @property
    def module_count(self) -> int:
        return len(self.modules)

    def page(self, number: int) -> Page | None:
        for page in self.pages:
            if page.number == number:
                return page
        return None

    @property
    def io_page(self) -> Page | None:
        return self.page(IO_PAGE)

    def modules_at(self, page: int, position: int) -> List[Module]:
        found = self.page(page)
        if found is None:
            return []
        return found.modules_at(position)

    def connections_from(self, module_index: int) -> List[Connection]:
        return [c for c in self.connections if c.source == module_index]

    def connections_to(self, module_index: int) -> List[Connection]:
        return [c for c in self.connections if c.destination == module_index]
