"""
XML codec for Atom and RSS documents.

Parsing and serialization go through ElementTree. Element and attribute names
are kept in Clark notation (``{namespace}local``) so that documents can be
inspected without caring which prefixes the remote side chose. On output the
well-known Blogger prefixes are restored and the Atom namespace becomes the
default namespace.

Importing this module registers those prefixes with ElementTree, which is
process-wide state: any other ElementTree output in the process also writes
Atom unprefixed. Elements in no namespace are written with ``xmlns=""`` so
that they are not read back as Atom.
"""
import copy
from typing import Dict, Iterable, List, Optional, Set, Union
import xml.etree.ElementTree as ET

import structlog

from blogexport.errors import ParseError

logger = structlog.get_logger()

ATOM_NS = "http://www.w3.org/2005/Atom"
GD_NS = "http://schemas.google.com/g/2005"
GEORSS_NS = "http://www.georss.org/georss"
OPENSEARCH_NS = "http://a9.com/-/spec/opensearchrss/1.0/"
THR_NS = "http://purl.org/syndication/thread/1.0"
BLOGGER_NS = "http://schemas.google.com/blogger/2018"
MEDIA_NS = "http://search.yahoo.com/mrss/"
APP_NS = "http://www.w3.org/2007/app"

PREFIXES: Dict[str, str] = {
    GD_NS: "gd",
    GEORSS_NS: "georss",
    OPENSEARCH_NS: "openSearch",
    THR_NS: "thr",
    BLOGGER_NS: "blogger",
    MEDIA_NS: "media",
    APP_NS: "app",
}

# Namespaces every Blogger Atom document declares on its root
REQUIRED_NAMESPACES = (GD_NS, GEORSS_NS, OPENSEARCH_NS, THR_NS)

XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>'

# Atom is registered as the empty prefix: the default_namespace option of
# ET.tostring rejects unqualified attribute names such as rel and href.
ET.register_namespace("", ATOM_NS)
for _uri, _prefix in PREFIXES.items():
    ET.register_namespace(_prefix, _uri)


def qname(namespace: str, local: str) -> str:
    """Return the Clark notation name of ``local`` in ``namespace``."""
    return f"{{{namespace}}}{local}"


def atom(local: str) -> str:
    """Return the Clark notation name of an Atom element."""
    return qname(ATOM_NS, local)


def parse_xml(content: Union[bytes, str]) -> ET.Element:
    """
    Parse an XML document into an element tree.

    Args:
        content: Raw document

    Returns:
        ET.Element: Document root

    Raises:
        ParseError: If the document is empty or not well-formed XML
    """
    if not content or not content.strip():
        raise ParseError("Empty XML document")
    try:
        return ET.fromstring(content)
    except ET.ParseError as e:
        logger.warning("Malformed XML document", error=str(e))
        raise ParseError(f"Malformed XML document: {e}") from e


def child_elements(parent: ET.Element, tag: str) -> List[ET.Element]:
    """Return every direct child named ``tag``, in document order."""
    return parent.findall(tag)


def child_text(parent: ET.Element, *tags: str) -> Optional[str]:
    """Return the text of the first direct child matching one of ``tags``."""
    for tag in tags:
        child = parent.find(tag)
        if child is not None:
            return child.text or ""
    return None


def _namespaces_in_use(root: ET.Element) -> Set[str]:
    used = set()
    for element in root.iter():
        names = [element.tag, *element.attrib.keys()]
        for name in names:
            if isinstance(name, str) and name.startswith("{"):
                used.add(name[1:].split("}", 1)[0])
    return used


def _is_unqualified(element: ET.Element) -> bool:
    return isinstance(element.tag, str) and not element.tag.startswith("{")


def _undeclare_default_namespace(root: ET.Element) -> None:
    # Atom is written as the default namespace, so switching in and out of
    # "no namespace" below the root needs explicit declarations
    atom_prefix = f"{{{ATOM_NS}}}"
    for parent in root.iter():
        parent_unqualified = _is_unqualified(parent)
        for child in parent:
            if _is_unqualified(child) and not parent_unqualified:
                child.set("xmlns", "")
            elif parent_unqualified and isinstance(child.tag, str) and child.tag.startswith(atom_prefix):
                child.set("xmlns", ATOM_NS)


def serialize(
    root: ET.Element,
    *,
    required_namespaces: Iterable[str] = REQUIRED_NAMESPACES,
    stylesheet: Optional[str] = None,
    indent: bool = True,
) -> str:
    """
    Serialize an element tree as a standalone UTF-8 XML document.

    The given tree is not modified.

    Args:
        root: Document root
        required_namespaces: Namespaces declared on the root even when unused
        stylesheet: Optional href of an ``xml-stylesheet`` processing instruction
        indent: Whether to pretty-print with two-space indentation

    Returns:
        str: XML document
    """
    tree = copy.deepcopy(root)
    _undeclare_default_namespace(tree)

    used = _namespaces_in_use(tree)
    for uri in required_namespaces:
        if uri in used or uri not in PREFIXES:
            continue
        tree.set(f"xmlns:{PREFIXES[uri]}", uri)

    if indent:
        ET.indent(tree, space="  ")

    parts = [XML_DECLARATION]
    if stylesheet:
        parts.append(f'<?xml-stylesheet href="{stylesheet}" type="text/css"?>')
    parts.append(ET.tostring(tree, encoding="unicode"))
    return "\n".join(parts) + "\n"
