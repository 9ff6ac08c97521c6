"""Entity type → import handler registry."""
from app.imports.entities.base import ImportHandler
from app.imports.entities.category import CategoryImportHandler
from app.imports.entities.employee import EmployeeImportHandler

_HANDLERS: dict[str, ImportHandler] = {}


def register(handler: ImportHandler) -> ImportHandler:
    entity_type = handler.config.entity_type
    if entity_type in _HANDLERS:
        raise ValueError(f"Import handler already registered for '{entity_type}'")
    _HANDLERS[entity_type] = handler
    return handler


def get_handler(entity_type: str) -> ImportHandler | None:
    return _HANDLERS.get(entity_type)


def list_handlers() -> list[ImportHandler]:
    return list(_HANDLERS.values())


register(EmployeeImportHandler())
register(CategoryImportHandler())
