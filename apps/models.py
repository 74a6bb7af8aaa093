"""
Model registration: import every table model here so SQLModel.metadata knows it before create_all().
"""
from apps.catalog.models import Category, Product

__all__ = ["Category", "Product"]
