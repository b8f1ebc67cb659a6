"""Parse a navigation document (XHTML ``<nav>`` or NCX) into per-file outline entries."""

from __future__ import annotations

import posixpath
from dataclasses import dataclass, field
from typing import Dict, List, Optional
from urllib.parse import unquote

from bs4 import BeautifulSoup
from bs4.element import Tag

from reef.models.document import DeclaredSection


@dataclass(slots=True)
class NavPoint:
    label: str
    href: Optional[str] = None
    children: List["NavPoint"] = field(default_factory=list)


@dataclass(slots=True)
class OutlineEntry:
    """Chapter title and declared sections collected for one content file."""

    title: Optional[str] = None
    sections: List[DeclaredSection] = field(default_factory=list)


def _label(element: Tag) -> str:
    return " ".join(element.get_text().split())


def _parse_list(list_tag: Tag) -> List[NavPoint]:
    points: List[NavPoint] = []
    for item in list_tag.find_all("li", recursive=False):
        anchor = item.find("a", recursive=False)
        label_tag = anchor if isinstance(anchor, Tag) else item.find("span", recursive=False)
        href = str(anchor.get("href")) if isinstance(anchor, Tag) and anchor.get("href") else None
        nested = item.find(["ol", "ul"], recursive=False)
        children = _parse_list(nested) if isinstance(nested, Tag) else []
        label = _label(label_tag) if isinstance(label_tag, Tag) else ""
        points.append(NavPoint(label=label, href=href, children=children))
    return points


def _parse_nav_points(parent: Tag) -> List[NavPoint]:
    points: List[NavPoint] = []
    for nav_point in parent.find_all("navpoint", recursive=False):
        content = nav_point.find("content", recursive=False)
        href = str(content.get("src")) if isinstance(content, Tag) and content.get("src") else None
        label_tag = nav_point.find("navlabel", recursive=False)
        label = _label(label_tag) if isinstance(label_tag, Tag) else ""
        points.append(NavPoint(label=label, href=href, children=_parse_nav_points(nav_point)))
    return points


def parse_nav(markup: str) -> List[NavPoint]:
    soup = BeautifulSoup(markup, "html.parser")

    nav_map = soup.find("navmap")
    if isinstance(nav_map, Tag):
        return _parse_nav_points(nav_map)

    nav = soup.find("nav", attrs={"epub:type": "toc"}) or soup.find("nav") or soup.body or soup
    top = nav.find(["ol", "ul"]) if isinstance(nav, Tag) else None
    if not isinstance(top, Tag):
        return []
    return _parse_list(top)


def _split_href(href: Optional[str], base_dir: str) -> tuple[str, Optional[str]]:
    path, _, fragment = (href or "").partition("#")
    path = unquote(path)
    if path:
        path = posixpath.normpath(posixpath.join(base_dir, path)) if base_dir else posixpath.normpath(path)
    return path, (fragment or None)


def outline_by_file(points: List[NavPoint], base_dir: str = "") -> Dict[str, OutlineEntry]:
    """Group nav points by the file they point into.

    Top-level points name chapters. Nested points into the parent's file (and
    top-level points with a fragment into an already named file) become
    declared sections; nested points into another file only name that file.
    Children of a point without a link are treated as top-level points.
    """

    entries: Dict[str, OutlineEntry] = {}

    def visit(point: NavPoint, parent_path: Optional[str]) -> None:
        path, fragment = _split_href(point.href, base_dir)
        if not path:
            if parent_path is None:
                # label-only group: its children are chapters in their own right
                for child in point.children:
                    visit(child, None)
                return
            path = parent_path

        if parent_path is None:
            entry = entries.get(path)
            if entry is None:
                entries[path] = OutlineEntry(title=point.label)
            elif fragment:
                entry.sections.append(DeclaredSection(title=point.label, anchor_id=fragment))
        elif path == parent_path:
            entries.setdefault(path, OutlineEntry()).sections.append(
                DeclaredSection(title=point.label, anchor_id=fragment)
            )
        else:
            entry = entries.setdefault(path, OutlineEntry(title=point.label))
            if entry.title is None:
                entry.title = point.label

        for child in point.children:
            visit(child, path)

    for point in points:
        visit(point, None)
    return entries


__all__ = ["NavPoint", "OutlineEntry", "outline_by_file", "parse_nav"]
