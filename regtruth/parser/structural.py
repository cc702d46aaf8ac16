"""Structural parser for Croatian legal documents (Narodne novine HTML or plain text).

The document is first flattened into blocks (paragraphs, headings, list items, tables)
with BeautifulSoup. Blocks are joined with newlines into the clean text, and each
block is classified by its leading marker:

    Članak 28.           -> CLANAK
    (1) ...              -> STAVAK    (inside an article)
    1. ... / a) ...      -> TOCKA     (inside an article)
    - ... / – ... / — ... -> ALINEJA  (inside an article)
    DIO / GLAVA / ODJELJAK / PRILOG headings
    <table>              -> TABLICA

Anything else is body text of the innermost open node. Node paths look like
``/clanak:28/stavak:1/tocka:a``; ``sort_key`` holds zero-padded order indices so a
plain string sort gives hierarchical document order.
"""

from __future__ import annotations

import hashlib
import json
import re
from dataclasses import asdict, dataclass, field
from enum import Enum

from bs4 import BeautifulSoup

from regtruth.grounding.text import normalize_text


class NodeType(str, Enum):
    DOCUMENT = "DOCUMENT"
    DIO = "DIO"
    GLAVA = "GLAVA"
    ODJELJAK = "ODJELJAK"
    CLANAK = "CLANAK"
    STAVAK = "STAVAK"
    TOCKA = "TOCKA"
    ALINEJA = "ALINEJA"
    PRILOG = "PRILOG"
    TABLICA = "TABLICA"


class ParseStatus(str, Enum):
    SUCCESS = "SUCCESS"
    PARTIAL = "PARTIAL"
    FAILED = "FAILED"


# Nesting level; a new node closes every open node at the same or a deeper level.
_LEVEL = {
    NodeType.DOCUMENT: 0,
    NodeType.DIO: 1,
    NodeType.PRILOG: 1,
    NodeType.GLAVA: 2,
    NodeType.ODJELJAK: 3,
    NodeType.CLANAK: 4,
    NodeType.STAVAK: 5,
    NodeType.TOCKA: 6,
    NodeType.ALINEJA: 7,
}
_NEEDS_ARTICLE = frozenset({NodeType.STAVAK, NodeType.TOCKA, NodeType.ALINEJA})

_ARTICLE_RE = re.compile(r"^[CČ]lanak\s+(\d+\s?[a-z]?)\.?$", re.IGNORECASE)
_STAVAK_RE = re.compile(r"^[»\"']?\s*\((\d+)\)\s*")
_TOCKA_NUM_RE = re.compile(r"^(\d+)\.\s+")
_TOCKA_LETTER_RE = re.compile(r"^([a-zčćđšž])\)\s+", re.IGNORECASE)
_ALINEJA_RE = re.compile(r"^[-–—]\s+")
_DIO_RE = re.compile(r"^(?:DIO\s+(\S+)|([IVXLCDM]+)\.\s*DIO)\b", re.IGNORECASE)
_GLAVA_RE = re.compile(r"^(?:GLAVA\s+([IVXLCDM]+|\d+)|([IVXLCDM]+)\.\s*GLAVA)\b", re.IGNORECASE)
_ODJELJAK_RE = re.compile(r"^(?:Odjeljak\s+(\d+)|(\d+)\.\s*Odjeljak)\b", re.IGNORECASE)
_PRILOG_RE = re.compile(r"^PRILOG(?:\s+([IVXLCDM]+|\d+))?\.?$", re.IGNORECASE)

_STRIP_TAGS = ["script", "style", "nav", "footer", "header", "aside"]
_BLOCK_TAGS = ["p", "h1", "h2", "h3", "h4", "h5", "h6", "li", "table"]


@dataclass(frozen=True)
class ParserConfig:
    min_coverage_percent: float = 50.0
    content_selector: str = "sl-content"

    def config_hash(self) -> str:
        return hashlib.sha256(json.dumps(asdict(self), sort_keys=True).encode("utf-8")).hexdigest()


@dataclass
class Block:
    kind: str  # "text" or "table"
    text: str
    start: int = 0
    end: int = 0


@dataclass
class ParsedNode:
    node_type: NodeType
    label: str | None
    path: str
    sort_key: str
    order_index: int
    depth: int
    parent_path: str | None
    raw_text: str = ""
    start_offset: int = 0
    end_offset: int = 0
    child_count: int = 0
    normalized_text: str = ""


@dataclass
class ParseResult:
    nodes: list[ParsedNode]
    clean_text: str
    clean_text_hash: str
    coverage_percent: float
    status: ParseStatus
    stats: dict = field(default_factory=dict)
    warnings: list[dict] = field(default_factory=list)


def _collapse(text: str) -> str:
    return " ".join(text.split())


def _table_text(table) -> str:
    rows = []
    for tr in table.find_all("tr"):
        cells = [_collapse(c.get_text(" ", strip=True)) for c in tr.find_all(["td", "th"])]
        if any(cells):
            rows.append(" | ".join(cells))
    return "\n".join(rows)


def html_blocks(html: str, config: ParserConfig) -> list[Block]:
    """Flatten HTML into text/table blocks in document order."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup.find_all(_STRIP_TAGS):
        tag.decompose()
    container = soup.find("div", class_=config.content_selector) or soup.body or soup

    blocks: list[Block] = []
    for el in container.find_all(_BLOCK_TAGS):
        if el.find_parent(_BLOCK_TAGS) is not None:
            continue
        if el.name == "table":
            text = _table_text(el)
            if text:
                blocks.append(Block("table", text))
            continue
        text = _collapse(el.get_text(" ", strip=True))
        if text:
            blocks.append(Block("text", text))

    if not blocks:
        blocks = text_blocks(container.get_text("\n"))
    return blocks


def text_blocks(text: str) -> list[Block]:
    return [Block("text", _collapse(line)) for line in text.splitlines() if line.strip()]


def _layout(blocks: list[Block]) -> str:
    pos = 0
    parts = []
    for block in blocks:
        block.start = pos
        block.end = pos + len(block.text)
        parts.append(block.text)
        pos = block.end + 1
    return "\n".join(parts)


def _classify(text: str) -> tuple[NodeType, str] | None:
    """Return (node type, ordinal) or None for plain body text."""
    m = _ARTICLE_RE.match(text)
    if m:
        return NodeType.CLANAK, m.group(1).replace(" ", "").lower()
    for node_type, regex in (
        (NodeType.DIO, _DIO_RE),
        (NodeType.GLAVA, _GLAVA_RE),
        (NodeType.ODJELJAK, _ODJELJAK_RE),
        (NodeType.PRILOG, _PRILOG_RE),
    ):
        m = regex.match(text)
        if m:
            ordinal = next((g for g in m.groups() if g), "1")
            return node_type, ordinal.rstrip(".").lower()
    m = _STAVAK_RE.match(text)
    if m:
        return NodeType.STAVAK, m.group(1)
    m = _TOCKA_NUM_RE.match(text) or _TOCKA_LETTER_RE.match(text)
    if m:
        return NodeType.TOCKA, m.group(1).lower()
    if _ALINEJA_RE.match(text):
        return NodeType.ALINEJA, ""
    return None


class _TreeBuilder:
    def __init__(self) -> None:
        self.root = ParsedNode(NodeType.DOCUMENT, None, "/", "", 0, 0, None)
        self.nodes: list[ParsedNode] = [self.root]
        self.by_path: dict[str, ParsedNode] = {"/": self.root}
        self.stack: list[ParsedNode] = [self.root]
        self.warnings: list[dict] = []
        self.covered_chars = 0

    @property
    def current(self) -> ParsedNode:
        return self.stack[-1]

    def _in_article(self) -> bool:
        return any(n.node_type == NodeType.CLANAK for n in self.stack)

    def _add(self, node_type: NodeType, ordinal: str, parent: ParsedNode, block: Block) -> ParsedNode:
        order_index = parent.child_count
        parent.child_count += 1
        if not ordinal:
            ordinal = str(order_index + 1)
        base = "" if parent.path == "/" else parent.path
        path = f"{base}/{node_type.value.lower()}:{ordinal}"
        if path in self.by_path:
            n = 2
            while f"{path}~{n}" in self.by_path:
                n += 1
            self.warnings.append({"code": "DUPLICATE_PATH", "path": path, "resolved_as": f"{path}~{n}"})
            path = f"{path}~{n}"
        sort_key = f"{parent.sort_key}.{order_index:04d}" if parent.sort_key else f"{order_index:04d}"
        node = ParsedNode(
            node_type=node_type,
            label=ordinal,
            path=path,
            sort_key=sort_key,
            order_index=order_index,
            depth=parent.depth + 1,
            parent_path=parent.path,
            start_offset=block.start,
            end_offset=block.end,
        )
        self.nodes.append(node)
        self.by_path[path] = node
        return node

    def _attach_text(self, node: ParsedNode, block: Block, text: str | None = None) -> None:
        text = block.text if text is None else text
        node.raw_text = f"{node.raw_text}\n{text}" if node.raw_text else text
        for open_node in self.stack:
            open_node.end_offset = max(open_node.end_offset, block.end)
        if node is not self.root:
            self.covered_chars += len(block.text)

    def feed(self, block: Block) -> None:
        if block.kind == "table":
            parent = self.current
            table = self._add(NodeType.TABLICA, "", parent, block)
            table.raw_text = block.text
            for open_node in self.stack:
                open_node.end_offset = max(open_node.end_offset, block.end)
            self.covered_chars += len(block.text)
            return

        classified = _classify(block.text)
        if classified is None or (classified[0] in _NEEDS_ARTICLE and not self._in_article()):
            self._attach_text(self.current, block)
            return

        node_type, ordinal = classified
        level = _LEVEL[node_type]
        while len(self.stack) > 1 and _LEVEL[self.current.node_type] >= level:
            self.stack.pop()
        node = self._add(node_type, ordinal, self.current, block)
        self.stack.append(node)
        self._attach_text(node, block)


def _coverage(covered: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return round(min(100.0, covered * 100.0 / total), 2)


def parse_blocks(blocks: list[Block], config: ParserConfig | None = None) -> ParseResult:
    config = config or ParserConfig()
    clean_text = _layout(blocks)
    clean_text_hash = hashlib.sha256(clean_text.encode("utf-8")).hexdigest()

    builder = _TreeBuilder()
    for block in blocks:
        builder.feed(block)

    root = builder.root
    root.start_offset = 0
    root.end_offset = len(clean_text)
    for node in builder.nodes:
        node.normalized_text = normalize_text(node.raw_text)

    total_chars = sum(len(b.text) for b in blocks)
    coverage = _coverage(builder.covered_chars, total_chars)
    by_type: dict[str, int] = {}
    for node in builder.nodes:
        by_type[node.node_type.value] = by_type.get(node.node_type.value, 0) + 1
    article_count = by_type.get(NodeType.CLANAK.value, 0)

    warnings = list(builder.warnings)
    if not clean_text.strip():
        status = ParseStatus.FAILED
        warnings.append({"code": "NO_CONTENT", "message": "no text found"})
    elif article_count == 0:
        status = ParseStatus.PARTIAL
        warnings.append({"code": "NO_ARTICLES", "message": "no 'Članak' headings recognised"})
    elif coverage < config.min_coverage_percent:
        status = ParseStatus.PARTIAL
        warnings.append(
            {
                "code": "LOW_COVERAGE",
                "message": f"coverage {coverage}% below {config.min_coverage_percent}%",
            }
        )
    else:
        status = ParseStatus.SUCCESS

    nodes = sorted(builder.nodes, key=lambda n: (n.depth, n.sort_key))
    return ParseResult(
        nodes=nodes,
        clean_text=clean_text,
        clean_text_hash=clean_text_hash,
        coverage_percent=coverage,
        status=status,
        stats={
            "node_count": len(nodes),
            "by_type": by_type,
            "total_chars": total_chars,
            "covered_chars": builder.covered_chars,
            "article_count": article_count,
        },
        warnings=warnings,
    )


def parse_html(html: str, config: ParserConfig | None = None) -> ParseResult:
    config = config or ParserConfig()
    return parse_blocks(html_blocks(html or "", config), config)


def parse_text(text: str, config: ParserConfig | None = None) -> ParseResult:
    return parse_blocks(text_blocks(text or ""), config)
