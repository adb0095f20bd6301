"""Entity/relationship data models uploaded as `data-model` documents.

Uploads arrive in a few JSON shapes. They are normalised once, at ingestion, into
DataModel so every later reader (chunking, chat, generation) sees one structure.

Accepted shapes:
  - {"entities": {<id>: {"name", "definition"|"description", "attributes"|"columns"}},
     "relationships": [{"source", "target", "type", "name", ...}]}
  - {"entities": [...], "relationships": [...]} already in canonical form
  - [entity, ..., {"type": "relationship", ...}] flat list
"""

import uuid
from typing import Any

from pydantic import BaseModel, Field

# Relationship type label -> (source cardinality, target cardinality)
CARDINALITY_BY_RELATIONSHIP_TYPE: dict[str, tuple[str, str]] = {
    "one-to-one": ("1", "1"),
    "1:1": ("1", "1"),
    "one-to-many": ("1", "*"),
    "1:m": ("1", "*"),
    "1:n": ("1", "*"),
    "1:*": ("1", "*"),
    "many-to-one": ("*", "1"),
    "m:1": ("*", "1"),
    "n:1": ("*", "1"),
    "*:1": ("*", "1"),
    "many-to-many": ("*", "*"),
    "m:m": ("*", "*"),
    "n:n": ("*", "*"),
    "*:*": ("*", "*"),
}
DEFAULT_CARDINALITY = ("1", "1")


class Attribute(BaseModel):
    """Entity attribute (column)."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex[:12])
    name: str
    type: str = "string"
    required: bool = False
    is_primary_key: bool = False
    is_foreign_key: bool = False
    description: str | None = None


class Entity(BaseModel):
    """Entity (table) in a data model."""

    id: str
    name: str
    definition: str = ""
    type: str = "entity"
    attributes: list[Attribute] = Field(default_factory=list)


class Relationship(BaseModel):
    """Directed relationship between two entities."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex[:12])
    name: str = ""
    source_entity_id: str
    target_entity_id: str
    source_cardinality: str = "1"
    target_cardinality: str = "1"
    description: str = ""


class DataModel(BaseModel):
    """Normalised entity/relationship model."""

    entities: list[Entity] = Field(default_factory=list)
    relationships: list[Relationship] = Field(default_factory=list)


def cardinality_for(relationship_type: str | None) -> tuple[str, str]:
    """Map a free-text relationship type to (source, target) cardinality."""
    if not relationship_type:
        return DEFAULT_CARDINALITY
    return CARDINALITY_BY_RELATIONSHIP_TYPE.get(
        relationship_type.strip().lower(), DEFAULT_CARDINALITY
    )


def _normalise_attribute(raw: Any) -> Attribute:
    if isinstance(raw, str):
        return Attribute(name=raw)
    return Attribute(
        id=str(raw.get("id") or uuid.uuid4().hex[:12]),
        name=raw.get("name", ""),
        type=raw.get("type") or "string",
        required=bool(raw.get("required", False)),
        is_primary_key=bool(
            raw.get("is_primary_key") or raw.get("isPrimaryKey") or raw.get("key") is True
        ),
        is_foreign_key=bool(raw.get("is_foreign_key") or raw.get("isForeignKey")),
        description=raw.get("description"),
    )


def _normalise_entity(entity_id: str, raw: dict[str, Any]) -> Entity:
    attributes = raw.get("attributes")
    if not isinstance(attributes, list):
        attributes = raw.get("columns") if isinstance(raw.get("columns"), list) else []
    return Entity(
        id=str(entity_id),
        name=raw.get("name") or str(entity_id),
        definition=raw.get("definition") or raw.get("description") or "",
        type=raw.get("type") or "entity",
        attributes=[_normalise_attribute(a) for a in attributes],
    )


def _normalise_relationship(raw: dict[str, Any]) -> Relationship:
    if raw.get("sourceCardinality") or raw.get("source_cardinality"):
        source_card = raw.get("sourceCardinality") or raw.get("source_cardinality")
        target_card = raw.get("targetCardinality") or raw.get("target_cardinality") or "1"
    else:
        source_card, target_card = cardinality_for(raw.get("type"))
    return Relationship(
        id=str(raw.get("id") or uuid.uuid4().hex[:12]),
        name=raw.get("name") or "",
        source_entity_id=str(
            raw.get("source") or raw.get("sourceEntityId") or raw.get("source_entity_id") or ""
        ),
        target_entity_id=str(
            raw.get("target") or raw.get("targetEntityId") or raw.get("target_entity_id") or ""
        ),
        source_cardinality=source_card,
        target_cardinality=target_card,
        description=raw.get("definition") or raw.get("description") or "",
    )


def normalise_data_model(content: Any) -> DataModel:
    """
    Normalise an uploaded data model into DataModel.

    Args:
        content: Parsed JSON (dict or list)

    Returns:
        DataModel

    Raises:
        ValueError: If the content is not one of the accepted shapes
    """
    if isinstance(content, list):
        entities = [
            _normalise_entity(item.get("id") or uuid.uuid4().hex[:12], item)
            for item in content
            if isinstance(item, dict) and item.get("type") != "relationship"
        ]
        relationships = [
            _normalise_relationship(item)
            for item in content
            if isinstance(item, dict) and item.get("type") == "relationship"
        ]
        return DataModel(entities=entities, relationships=relationships)

    if not isinstance(content, dict):
        raise ValueError("Data model must be a JSON object or array")

    raw_entities = content.get("entities", [])
    if isinstance(raw_entities, dict):
        entities = [
            _normalise_entity(entity_id, data)
            for entity_id, data in raw_entities.items()
            if isinstance(data, dict)
        ]
    elif isinstance(raw_entities, list):
        entities = [
            _normalise_entity(e.get("id") or uuid.uuid4().hex[:12], e)
            for e in raw_entities
            if isinstance(e, dict)
        ]
    else:
        raise ValueError("Data model 'entities' must be an object or array")

    raw_relationships = content.get("relationships", [])
    if not isinstance(raw_relationships, list):
        raise ValueError("Data model 'relationships' must be an array")

    relationships = [_normalise_relationship(r) for r in raw_relationships if isinstance(r, dict)]
    return DataModel(entities=entities, relationships=relationships)


def render_data_model(model: DataModel) -> str:
    """Render a data model as plain text for chunking and prompts."""
    names = {e.id: e.name for e in model.entities}
    lines = [f"DATA MODEL ({len(model.entities)} entities, {len(model.relationships)} relationships)"]

    if model.entities:
        lines.append("")
        lines.append("ENTITIES:")
        for entity in model.entities:
            lines.append(f"- {entity.name} ({entity.type}): {entity.definition or 'No definition provided'}")
            for attr in entity.attributes:
                flags = []
                if attr.is_primary_key:
                    flags.append("PK")
                if attr.is_foreign_key:
                    flags.append("FK")
                flag_str = f", {', '.join(flags)}" if flags else ""
                desc = f": {attr.description}" if attr.description else ""
                lines.append(f"    - {attr.name} ({attr.type}{flag_str}){desc}")

    if model.relationships:
        lines.append("")
        lines.append("RELATIONSHIPS:")
        for rel in model.relationships:
            source = names.get(rel.source_entity_id, rel.source_entity_id)
            target = names.get(rel.target_entity_id, rel.target_entity_id)
            lines.append(
                f"- {source} -> {target}: {rel.name or 'Relationship'} "
                f"({rel.source_cardinality}:{rel.target_cardinality})"
                f"{' - ' + rel.description if rel.description else ''}"
            )

    return "\n".join(lines)
