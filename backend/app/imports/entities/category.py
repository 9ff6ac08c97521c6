"""Menu category import: natural key is the category name (case-insensitive)."""
import uuid
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from app.imports.entities.base import ImportContext, ImportHandler
from app.imports.errors import RowError
from app.imports.references import normalize_key
from app.imports.schema import (
    EntityImportConfig,
    FieldDefinition,
    FieldType,
    ReferenceField,
    ReferenceSheet,
    ReferenceSource,
)
from app.models.menu import CATEGORY_TYPES, MenuCategory

CATEGORIES = ReferenceSource(name="categories", model=MenuCategory)

CATEGORY_IMPORT = EntityImportConfig(
    entity_type="category",
    natural_key="name",
    fields=(
        FieldDefinition("name", "Name", required=True,
                        description="Category name (used to identify existing category for update)",
                        example="Main Dishes"),
        FieldDefinition("description", "Description", description="Category description",
                        example="Hearty plates served all day"),
        FieldDefinition("categoryType", "Category Type", description="food, dessert, or beverage",
                        choices=CATEGORY_TYPES, example="food"),
        FieldDefinition("parentName", "Parent Category", description="Name of an existing parent category"),
        FieldDefinition("displayOrder", "Display Order", type=FieldType.number,
                        description="Sort position on the menu", example="0"),
        FieldDefinition("isActive", "Is Active", type=FieldType.boolean, description="Whether category is active",
                        example="true", default=True),
    ),
    translate_fields=("name", "description"),
    references=(ReferenceField("parentName", "parentId", CATEGORIES, noun="Parent category"),),
    reference_sheets=(ReferenceSheet("Categories", CATEGORIES),),
)


class CategoryImportHandler(ImportHandler):
    config = CATEGORY_IMPORT
    model = MenuCategory
    natural_key_column = "name"

    def check_row(self, values: dict[str, Any], is_update: bool = False) -> None:
        parent = values.get("parentName")
        if parent and normalize_key(parent) == normalize_key(values["name"]):
            raise RowError("A category cannot be its own parent")
        order = values.get("displayOrder")
        if order is not None and (order < 0 or float(order) != int(order)):
            raise RowError(f"Display Order must be a whole number of 0 or more. Found: {order}")

    def build_record(self, intent, ctx: ImportContext) -> dict[str, Any]:
        v = intent.resolved_fields
        return {
            "tenant_id": ctx.tenant_id,
            "name": v["name"],
            "description": v.get("description"),
            "category_type": v.get("categoryType") or "food",
            "parent_id": v.get("parentId"),
            "display_order": int(v.get("displayOrder") or 0),
            "is_active": v.get("isActive", True),
        }

    def build_patch(self, intent, ctx: ImportContext) -> dict[str, Any]:
        v = intent.resolved_fields
        patch: dict[str, Any] = {"name": v["name"]}
        if "isActive" in v:
            patch["is_active"] = v["isActive"]
        if "parentId" in v:
            patch["parent_id"] = v["parentId"]
        if v.get("description") is not None:
            patch["description"] = v["description"]
        if v.get("categoryType") is not None:
            patch["category_type"] = v["categoryType"]
        if v.get("displayOrder") is not None:
            patch["display_order"] = int(v["displayOrder"])
        return patch

    async def export_records(self, db: AsyncSession, tenant_id: uuid.UUID) -> list[dict[str, Any]]:
        parent = aliased(MenuCategory)
        rows = (
            await db.execute(
                select(MenuCategory, parent.name)
                .outerjoin(parent, parent.id == MenuCategory.parent_id)
                .where(MenuCategory.tenant_id == tenant_id, MenuCategory.deleted_at.is_(None))
                .order_by(MenuCategory.display_order, MenuCategory.name)
            )
        ).all()
        return [
            {
                "name": c.name,
                "description": c.description,
                "categoryType": c.category_type,
                "parentName": parent_name,
                "displayOrder": c.display_order,
                "isActive": c.is_active,
            }
            for c, parent_name in rows
        ]
