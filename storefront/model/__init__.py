from storefront.model.base import BaseModel
from storefront.model.tenant import Tenant
from storefront.model.user import User
from storefront.model.verification_token import VerificationToken
from storefront.model.audit_log import AuditLog
from storefront.model.category import Category
from storefront.model.product import Product, ProductVariant
from storefront.model.cart import Cart, CartItem
from storefront.model.order import Order, OrderItem

__all__ = [
    "BaseModel",
    "Tenant",
    "User",
    "VerificationToken",
    "AuditLog",
    "Category",
    "Product",
    "ProductVariant",
    "Cart",
    "CartItem",
    "Order",
    "OrderItem",
]
