"""
Database Module
"""
from .connection import Database
from .models import Base, Brand, Product, SaleFact, Store

__all__ = [
    "Database",
    "Base",
    "Brand",
    "Product",
    "SaleFact",
    "Store",
]
