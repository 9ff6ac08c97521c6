"""Employee import: natural key is e-mail; roles and branches are replaced wholesale."""
import re
import uuid
from collections import defaultdict
from datetime import date
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import hash_password
from app.imports.entities.base import ImportContext, ImportHandler
from app.imports.errors import RowError
from app.imports.schema import (
    Association,
    EntityImportConfig,
    FieldDefinition,
    FieldType,
    ReferenceField,
    ReferenceSheet,
    ReferenceSource,
)
from app.models.role import Role
from app.models.tenant import Branch
from app.models.user import EMPLOYMENT_TYPES, User, UserBranch, UserRole

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_PASSWORD_LENGTH = 8

ROLES = ReferenceSource(name="roles", model=Role, tenant_scoped=False, alias_column="display_name")
BRANCHES = ReferenceSource(name="branches", model=Branch)

EMPLOYEE_IMPORT = EntityImportConfig(
    entity_type="employee",
    natural_key="email",
    fields=(
        FieldDefinition("email", "Email", required=True,
                        description="Employee email address (used to identify existing employee for update)",
                        example="jane.doe@example.com"),
        FieldDefinition("name", "Name", required=True, description="Employee name", example="Jane Doe"),
        FieldDefinition("roleNames", "Role Names", required=True, type=FieldType.array,
                        description="Comma-separated role names (e.g., Manager, Cashier)", example="Manager, Cashier"),
        FieldDefinition("branchNames", "Branch Names", required=True, type=FieldType.array,
                        description="Comma-separated branch names", example="Main Branch"),
        FieldDefinition("phone", "Phone", description="Employee phone number", example="+1 555 0100"),
        FieldDefinition("employeeId", "Employee ID", description="Employee ID number", example="EMP-0001"),
        FieldDefinition("nationalId", "National ID", description="National ID number"),
        FieldDefinition("dateOfBirth", "Date of Birth", type=FieldType.date, description="Date of birth (YYYY-MM-DD)",
                        example="1990-05-17"),
        FieldDefinition("employmentType", "Employment Type", description="full_time, part_time, or contract",
                        choices=EMPLOYMENT_TYPES),
        FieldDefinition("joiningDate", "Joining Date", type=FieldType.date, description="Joining date (YYYY-MM-DD)"),
        FieldDefinition("salary", "Salary", type=FieldType.number, description="Employee salary", example="2500"),
        FieldDefinition("isActive", "Is Active", type=FieldType.boolean, description="Whether employee is active",
                        example="true", default=True),
        FieldDefinition("createAuthAccount", "Create Auth Account", type=FieldType.boolean,
                        description="Whether to create a sign-in account", example="false"),
        FieldDefinition("password", "Password", description="Password for the sign-in account (if creating)",
                        example=""),
    ),
    translate_fields=("name",),
    references=(
        ReferenceField("roleNames", "roleIds", ROLES, noun="Role(s)"),
        ReferenceField("branchNames", "branchIds", BRANCHES, noun="Branch(es)"),
    ),
    reference_sheets=(
        ReferenceSheet("Roles", ROLES),
        ReferenceSheet("Branches", BRANCHES),
    ),
)

# import field → users column, for optional scalars copied as-is
_OPTIONAL_COLUMNS = {
    "phone": "phone",
    "employeeId": "employee_number",
    "nationalId": "national_id",
    "dateOfBirth": "date_of_birth",
    "employmentType": "employment_type",
    "joiningDate": "joining_date",
    "salary": "salary",
}


class EmployeeImportHandler(ImportHandler):
    config = EMPLOYEE_IMPORT
    model = User
    natural_key_column = "email"
    associations = (
        Association(UserRole, field="roleIds", parent_column="user_id", child_column="role_id",
                    stamp_actor_column="assigned_by"),
        Association(UserBranch, field="branchIds", parent_column="user_id", child_column="branch_id"),
    )

    def check_row(self, values: dict[str, Any], is_update: bool = False) -> None:
        email = str(values["email"]).strip()
        if not EMAIL_RE.match(email):
            raise RowError(f"Invalid email format: {email}")
        if values.get("createAuthAccount"):
            password = values.get("password") or ""
            # a blank password on an existing employee keeps the stored credentials
            if is_update and not password:
                return
            if len(password) < MIN_PASSWORD_LENGTH:
                raise RowError(
                    f"Password of at least {MIN_PASSWORD_LENGTH} characters is required when Create Auth Account is true"
                )

    def _primary_role(self, values: dict[str, Any], ctx: ImportContext) -> str | None:
        role_ids = values.get("roleIds") or []
        if not role_ids:
            return None
        return ctx.catalog.name_for(ROLES.name, role_ids[0])

    def build_record(self, intent, ctx: ImportContext) -> dict[str, Any]:
        v = intent.resolved_fields
        record = {
            "tenant_id": ctx.tenant_id,
            "email": intent.natural_key,
            "name": v["name"],
            "role": self._primary_role(v, ctx) or "",
            "is_active": v.get("isActive", True),
            "password_hash": None,
        }
        for field_name, column in _OPTIONAL_COLUMNS.items():
            record[column] = v.get(field_name)
        if not record["employee_number"]:
            record["employee_number"] = f"EMP-{uuid.uuid4().hex[:10].upper()}"
        if not record["joining_date"]:
            record["joining_date"] = date.today()
        if v.get("createAuthAccount") and v.get("password"):
            record["password_hash"] = hash_password(v["password"])
        return record

    def build_patch(self, intent, ctx: ImportContext) -> dict[str, Any]:
        v = intent.resolved_fields
        patch: dict[str, Any] = {"name": v["name"]}
        role = self._primary_role(v, ctx)
        if role:
            patch["role"] = role
        if "isActive" in v:
            patch["is_active"] = v["isActive"]
        # empty optional cells leave the stored value untouched
        for field_name, column in _OPTIONAL_COLUMNS.items():
            if v.get(field_name) is not None:
                patch[column] = v[field_name]
        if v.get("createAuthAccount") and v.get("password"):
            patch["password_hash"] = hash_password(v["password"])
        return patch

    async def export_records(self, db: AsyncSession, tenant_id: uuid.UUID) -> list[dict[str, Any]]:
        users = (
            await db.execute(
                select(User)
                .where(User.tenant_id == tenant_id, User.deleted_at.is_(None))
                .order_by(User.name)
            )
        ).scalars().all()
        ids = [u.id for u in users]

        role_names: dict[uuid.UUID, list[str]] = defaultdict(list)
        branch_names: dict[uuid.UUID, list[str]] = defaultdict(list)
        if ids:
            for user_id, name in (
                await db.execute(
                    select(UserRole.user_id, Role.name)
                    .join(Role, Role.id == UserRole.role_id)
                    .where(UserRole.user_id.in_(ids))
                )
            ).all():
                role_names[user_id].append(name)
            for user_id, name in (
                await db.execute(
                    select(UserBranch.user_id, Branch.name)
                    .join(Branch, Branch.id == UserBranch.branch_id)
                    .where(UserBranch.user_id.in_(ids))
                )
            ).all():
                branch_names[user_id].append(name)

        return [
            {
                "email": u.email,
                "name": u.name,
                "roleNames": role_names[u.id],
                "branchNames": branch_names[u.id],
                "phone": u.phone,
                "employeeId": u.employee_number,
                "nationalId": u.national_id,
                "dateOfBirth": u.date_of_birth,
                "employmentType": u.employment_type,
                "joiningDate": u.joining_date,
                "salary": u.salary,
                "isActive": u.is_active,
                "createAuthAccount": u.password_hash is not None,
                "password": None,
            }
            for u in users
        ]
