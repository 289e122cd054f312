"""
SVG Output - A small element tree that serializes to SVG text.

Every draw builds a fresh tree from scratch; nothing is patched in place.
Attribute names use underscores in Python (stroke_width) and are written
with hyphens (stroke-width). A trailing underscore escapes keywords
(class_ -> class).
"""

from typing import Callable, Dict, Iterator, List, Optional, Union

AttrValue = Union[str, int, float, None]

# Average glyph advance as a fraction of the font size (sans-serif, mixed case)
_CHAR_WIDTH = 0.6
_BOLD_FACTOR = 1.08
_LINE_HEIGHT = 1.2


def escape(text: str) -> str:
    """Escape text for use inside SVG content or attribute values."""
    return (str(text)
            .replace('&', '&amp;')
            .replace('<', '&lt;')
            .replace('>', '&gt;')
            .replace('"', '&quot;'))


def fmt_number(value: float) -> str:
    """Compact numeric attribute: at most 2 decimals, no trailing zeros."""
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, int):
        return str(value)
    text = f"{value:.2f}".rstrip('0').rstrip('.')
    return '0' if text in ('-0', '') else text


def _attr_name(name: str) -> str:
    if name.endswith('_'):
        name = name[:-1]
    return name.replace('_', '-')


def estimate_text_width(text: str, font_size: float = 12, bold: bool = False) -> float:
    """
    Approximate rendered width of a (possibly multi-line) label.

    There is no layout engine at draw time, so widths come from an average
    glyph advance. The widest line wins.
    """
    lines = str(text).split('\n') or ['']
    widest = max(len(line) for line in lines)
    width = widest * font_size * _CHAR_WIDTH
    return width * _BOLD_FACTOR if bold else width


def estimate_text_height(text: str, font_size: float = 12) -> float:
    """Height of a label block: one line-height per line."""
    return len(str(text).split('\n')) * font_size * _LINE_HEIGHT


class SvgElement:
    """One SVG node with ordered attributes, optional text and children."""

    def __init__(self, tag: str, text: Optional[str] = None, **attrs: AttrValue):
        self.tag = tag
        self.text = text
        self.attrs: Dict[str, str] = {}
        self.children: List['SvgElement'] = []
        self.set(**attrs)

    def set(self, **attrs: AttrValue) -> 'SvgElement':
        """Set attributes; None values are skipped."""
        for name, value in attrs.items():
            if value is None:
                continue
            if isinstance(value, (int, float)):
                value = fmt_number(value)
            self.attrs[_attr_name(name)] = str(value)
        return self

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.attrs.get(_attr_name(name), default)

    def add(self, tag: str, text: Optional[str] = None, **attrs: AttrValue) -> 'SvgElement':
        """Create a child element and return it."""
        child = SvgElement(tag, text, **attrs)
        self.children.append(child)
        return child

    def append(self, child: 'SvgElement') -> 'SvgElement':
        self.children.append(child)
        return child

    def iter(self) -> Iterator['SvgElement']:
        """Depth-first walk, self included, in document order."""
        yield self
        for child in self.children:
            yield from child.iter()

    def find_all(
        self,
        tag: Optional[str] = None,
        class_: Optional[str] = None,
        where: Optional[Callable[['SvgElement'], bool]] = None,
    ) -> List['SvgElement']:
        """All descendants (and self) matching tag, class and predicate."""
        found = []
        for el in self.iter():
            if tag is not None and el.tag != tag:
                continue
            if class_ is not None and class_ not in (el.attrs.get('class') or '').split():
                continue
            if where is not None and not where(el):
                continue
            found.append(el)
        return found

    def find(self, tag: Optional[str] = None, class_: Optional[str] = None) -> Optional['SvgElement']:
        matches = self.find_all(tag, class_)
        return matches[0] if matches else None

    def text_content(self) -> str:
        parts = [self.text or '']
        parts.extend(child.text_content() for child in self.children)
        return ''.join(parts)

    def to_string(self, indent: int = 0, _level: int = 0) -> str:
        """Serialize to SVG text (pretty-printed when indent > 0)."""
        pad = ' ' * (indent * _level) if indent else ''
        newline = '\n' if indent else ''
        attrs = ''.join(f' {k}="{escape(v)}"' for k, v in self.attrs.items())

        if not self.children and self.text is None:
            return f"{pad}<{self.tag}{attrs}/>"
        if not self.children:
            return f"{pad}<{self.tag}{attrs}>{escape(self.text)}</{self.tag}>"

        inner = newline.join(c.to_string(indent, _level + 1) for c in self.children)
        text = escape(self.text) if self.text else ''
        return f"{pad}<{self.tag}{attrs}>{text}{newline}{inner}{newline}{pad}</{self.tag}>"

    def __repr__(self) -> str:
        return f"SvgElement({self.tag!r}, {len(self.children)} children)"


def svg_root(width: float, height: float) -> SvgElement:
    """Top-level <svg> scaled to its container, like a responsive viewBox chart."""
    return SvgElement(
        'svg',
        xmlns='http://www.w3.org/2000/svg',
        viewBox=f"0 0 {fmt_number(width)} {fmt_number(height)}",
        width='100%',
        style='display:block;height:auto;overflow:visible',
    )
