"""Cross-part wiring: relationships and content-type overrides for new parts."""

from __future__ import annotations

import logging

from ooxml_comments.package import Package, member_name
from ooxml_comments.xml_parts import ContentTypesPart, RelationshipsPart

logger = logging.getLogger(__name__)


def ensure_relationship(
    package: Package,
    source_partname: str,
    reltype: str,
    target_partname: str,
) -> str:
    """
    Ensure ``source_partname`` has a relationship of ``reltype`` to a target.

    Args:
        package: Package being edited.
        source_partname: Part owning the relationship (e.g. word/document.xml).
        reltype: Relationship type URI.
        target_partname: Member name of the target part.

    Returns:
        The Id of the existing or newly added relationship.
    """
    rels = RelationshipsPart(package, source_partname)
    existing = rels.find(reltype, target_partname)
    if existing is not None:
        return existing.rel_id

    rel_id = rels.add(reltype, target_partname)
    logger.debug(
        "Added relationship %s from %s to %s",
        rel_id,
        member_name(source_partname),
        member_name(target_partname),
    )
    return rel_id


def ensure_content_type_override(
    package: Package,
    partname: str,
    content_type: str,
) -> bool:
    """
    Ensure [Content_Types].xml declares an Override for ``partname``.

    An override already present for the part is left as is, whatever its
    content type.

    Returns:
        True if an entry was added, False if one already existed.
    """
    content_types = ContentTypesPart(package)
    if content_types.override_for(partname) is not None:
        return False
    content_types.add_override(partname, content_type)
    logger.debug("Added content type override for /%s", member_name(partname))
    return True
