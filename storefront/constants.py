"""
Business constants shared by the API, services and helpers.
"""
import enum


class Role(str, enum.Enum):
    SUPER_ADMIN = "SUPER_ADMIN"
    TENANT_ADMIN = "TENANT_ADMIN"
    STAFF = "STAFF"
    CUSTOMER = "CUSTOMER"


# Higher level grants everything a lower level can do.
ROLE_HIERARCHY: dict[str, int] = {
    Role.SUPER_ADMIN.value: 4,
    Role.TENANT_ADMIN.value: 3,
    Role.STAFF.value: 2,
    Role.CUSTOMER.value: 1,
}


class OrderStatus(str, enum.Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"
    PARTIALLY_REFUNDED = "PARTIALLY_REFUNDED"


CANCELLABLE_ORDER_STATUSES = {
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.PROCESSING,
}

# reached only through the cancel and refund actions, never left again
FINAL_ORDER_STATUSES = {
    OrderStatus.CANCELLED,
    OrderStatus.REFUNDED,
    OrderStatus.PARTIALLY_REFUNDED,
}


class PaymentStatus(str, enum.Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"
    PARTIALLY_REFUNDED = "PARTIALLY_REFUNDED"
    CANCELLED = "CANCELLED"


FINAL_PAYMENT_STATUSES = {
    PaymentStatus.REFUNDED,
    PaymentStatus.PARTIALLY_REFUNDED,
    PaymentStatus.CANCELLED,
}


class ProductStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    ARCHIVED = "ARCHIVED"


class InventoryStatus(str, enum.Enum):
    IN_STOCK = "IN_STOCK"
    LOW_STOCK = "LOW_STOCK"
    OUT_OF_STOCK = "OUT_OF_STOCK"
    DISCONTINUED = "DISCONTINUED"


TENANT_STATUS_ACTIVE = "active"

DEFAULT_TAX_RATE = 0.1  # fraction; tenant settings store it as a percentage
DEFAULT_SHIPPING_COST = 0.0
FREE_SHIPPING_THRESHOLD = 50.0
ORDER_NUMBER_PREFIX = "ORD"
PRODUCT_SKU_PREFIX = "PROD"

ORDER_PROCESSING_DAYS = 1
ORDER_SHIPPING_DAYS = 3

UNLIMITED = -1

SUBSCRIPTION_PLANS: dict[str, dict] = {
    "free": {
        "id": "free",
        "name": "Free",
        "price": 0,
        "interval": "month",
        "features": [
            "Up to 10 products",
            "Basic analytics",
            "Email support",
            "Standard checkout",
        ],
        "limits": {"products": 10, "customers": 100, "storage": 100, "orders": 50, "api_calls": 1000},
    },
    "starter": {
        "id": "starter",
        "name": "Starter",
        "price": 29,
        "interval": "month",
        "features": [
            "Up to 100 products",
            "Advanced analytics",
            "Priority support",
            "Custom domain",
            "Discount codes",
            "Abandoned cart recovery",
        ],
        "limits": {"products": 100, "customers": 1000, "storage": 1024, "orders": 500, "api_calls": 10000},
    },
    "professional": {
        "id": "professional",
        "name": "Professional",
        "price": 99,
        "interval": "month",
        "features": [
            "Unlimited products",
            "Advanced analytics",
            "Priority support",
            "Custom domain",
            "API access",
            "White-label option",
            "Multi-currency",
            "Advanced shipping",
        ],
        "limits": {"products": UNLIMITED, "customers": UNLIMITED, "storage": 10240, "orders": UNLIMITED, "api_calls": 100000},
    },
}

DEFAULT_PLAN_ID = "free"

# Currency display: symbol always before the amount.
CURRENCIES: dict[str, dict] = {
    "USD": {"code": "USD", "symbol": "$", "name": "US Dollar", "decimal_places": 2},
    "EUR": {"code": "EUR", "symbol": "€", "name": "Euro", "decimal_places": 2},
    "GBP": {"code": "GBP", "symbol": "£", "name": "British Pound", "decimal_places": 2},
    "CAD": {"code": "CAD", "symbol": "C$", "name": "Canadian Dollar", "decimal_places": 2},
    "AUD": {"code": "AUD", "symbol": "A$", "name": "Australian Dollar", "decimal_places": 2},
    "JPY": {"code": "JPY", "symbol": "¥", "name": "Japanese Yen", "decimal_places": 0},
}
DEFAULT_CURRENCY = "USD"

DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
PRODUCTS_PAGE_SIZE = 12
PRODUCTS_MAX_PAGE_SIZE = 50
ORDERS_PAGE_SIZE = 20
CUSTOMERS_PAGE_SIZE = 25
ANALYTICS_DEFAULT_DAYS = 30
ANALYTICS_MAX_DAYS = 365

PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 128
EMAIL_MAX_LENGTH = 254
PRODUCT_NAME_MIN_LENGTH = 3
PRODUCT_NAME_MAX_LENGTH = 100
PRODUCT_DESCRIPTION_MIN_LENGTH = 10
PRODUCT_DESCRIPTION_MAX_LENGTH = 2000
PRODUCT_SKU_MAX_LENGTH = 50
PRODUCT_PRICE_MIN = 0
PRODUCT_PRICE_MAX = 999999.99
ORDER_NOTES_MAX_LENGTH = 500
MAX_FILE_SIZE = 5 * 1024 * 1024
ALLOWED_IMAGE_TYPES = ["image/jpeg", "image/png", "image/webp", "image/gif"]
ALLOWED_DOCUMENT_TYPES = ["application/pdf", "text/csv", "application/vnd.ms-excel"]
MAX_IMAGES_PER_PRODUCT = 10


class Messages:
    """User facing messages returned in the `error` / `message` envelope fields."""

    UNAUTHORIZED = "You are not authorized to perform this action"
    NOT_FOUND = "The requested resource was not found"
    VALIDATION_ERROR = "Please check your input and try again"
    SERVER_ERROR = "Internal server error"
    RATE_LIMIT_EXCEEDED = "Too many requests. Please try again later"
    INVALID_CREDENTIALS = "Invalid email or password"
    EMAIL_EXISTS = "User with this email already exists"
    INVALID_EMAIL = "Invalid email address"
    INVALID_TOKEN = "Invalid or expired token"
    INSUFFICIENT_PERMISSIONS = "You don't have permission to perform this action"
    ACCESS_DENIED = "Access denied"
    RESOURCE_CONFLICT = "This resource already exists"
    INVENTORY_UNAVAILABLE = "Requested quantity not available in stock"
    USER_NOT_FOUND = "User not found"
    TENANT_NOT_FOUND = "Tenant not found"
    PLAN_LIMIT_REACHED = "Your subscription plan limit has been reached"

    LOGIN_SUCCESS = "Successfully logged in"
    LOGOUT_SUCCESS = "Successfully logged out"
    REGISTER_SUCCESS = "Account created successfully"
    PASSWORD_RESET_SENT = "Password reset token generated"
    PASSWORD_RESET_SUCCESS = "Password reset successfully"
    PASSWORD_CHANGED = "Password changed successfully"
    PRODUCT_CREATED = "Product created successfully"
    PRODUCT_UPDATED = "Product updated successfully"
    PRODUCT_DELETED = "Product deleted successfully"
    ORDER_CREATED = "Order placed successfully"
    ORDER_UPDATED = "Order updated successfully"
    ORDER_CANCELLED = "Order cancelled successfully"
    ORDER_REFUNDED = "Order refunded successfully"
    CART_UPDATED = "Cart updated successfully"
    CUSTOMER_CREATED = "Customer created successfully"
    CUSTOMER_UPDATED = "Customer updated successfully"
    SETTINGS_SAVED = "Settings saved successfully"


class ValidationMessages:
    PASSWORD_TOO_SHORT = "Password must be at least 8 characters long"
    PASSWORD_TOO_LONG = "Password must be less than 128 characters"
    PASSWORD_MISSING_UPPERCASE = "Password must contain at least one uppercase letter"
    PASSWORD_MISSING_LOWERCASE = "Password must contain at least one lowercase letter"
    PASSWORD_MISSING_NUMBER = "Password must contain at least one number"
    PASSWORD_MISSING_SPECIAL = "Password must contain at least one special character"
    PRODUCT_NAME_TOO_SHORT = "Product name must be at least 3 characters long"
    PRODUCT_NAME_TOO_LONG = "Product name must be less than 100 characters"
    PRODUCT_DESCRIPTION_TOO_SHORT = "Product description must be at least 10 characters long"
    PRODUCT_DESCRIPTION_TOO_LONG = "Product description must be less than 2000 characters"
    PRODUCT_PRICE_INVALID = "Product price must be greater than 0"
    PRODUCT_PRICE_TOO_HIGH = "Product price cannot exceed $999,999.99"
    PRODUCT_CATEGORY_REQUIRED = "Product category is required"
    PRODUCT_SKU_TOO_LONG = "SKU must be at most 50 characters"
    REQUIRED = "This field is required"


# (requests, window in seconds)
RATE_LIMITS: dict[str, tuple[int, int]] = {
    "login": (5, 15 * 60),
    "register": (3, 60 * 60),
    "reset_password": (3, 60 * 60),
}
