# buildapp/crud/crud_party.py
"""Lookups for suppliers, catalog entries, projects and rental tools."""
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from buildapp.models.catalog_entry import CatalogEntry
from buildapp.models.project import Project
from buildapp.models.rental_tool import RentalTool
from buildapp.models.supplier import Supplier


def get_supplier(db: Session, supplier_id: str) -> Optional[Supplier]:
    return db.query(Supplier).filter(Supplier.id == supplier_id).first()


def get_supplier_by_user(db: Session, user_id: str) -> Optional[Supplier]:
    return db.query(Supplier).filter(Supplier.user_id == user_id).first()


def get_suppliers(db: Session, supplier_ids: Iterable[str]) -> List[Supplier]:
    supplier_ids = list(supplier_ids)
    if not supplier_ids:
        return []
    return db.query(Supplier).filter(Supplier.id.in_(supplier_ids)).all()


def get_catalog_entries(db: Session, entry_ids: Iterable[str]) -> dict:
    entry_ids = list(entry_ids)
    if not entry_ids:
        return {}
    rows = db.query(CatalogEntry).filter(CatalogEntry.id.in_(entry_ids)).all()
    return {row.id: row for row in rows}


def get_project(db: Session, project_id: str) -> Optional[Project]:
    return db.query(Project).filter(Project.id == project_id).first()


def get_rental_tool(db: Session, tool_id: str) -> Optional[RentalTool]:
    return db.query(RentalTool).filter(RentalTool.id == tool_id).first()
