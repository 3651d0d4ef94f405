"""Database models"""
from src.inventory_tool.models.base import Base
from src.inventory_tool.models.user import User
from src.inventory_tool.models.category import Category
from src.inventory_tool.models.location import Location
from src.inventory_tool.models.inventory_item import InventoryItem
from src.inventory_tool.models.audit_log import AuditLog

__all__ = ["Base", "User", "Category", "Location", "InventoryItem", "AuditLog"]
