import os
from decimal import Decimal

# Roles
ROLE_CUSTOMER = 'customer'
ROLE_DRIVER = 'driver'
ROLE_RESTAURANT = 'restaurant'
ROLES = (ROLE_CUSTOMER, ROLE_DRIVER, ROLE_RESTAURANT)

# Record kinds
KIND_USER = 'user'
KIND_RESTAURANT = 'restaurant'
KIND_ORDER = 'order'

# Order statuses, in lifecycle order
STATUS_PENDING = 'pending'
STATUS_CONFIRMED = 'confirmed'
STATUS_PREPARING = 'preparing'
STATUS_READY = 'ready'
STATUS_PICKED_UP = 'picked_up'
STATUS_OUT_FOR_DELIVERY = 'out_for_delivery'
STATUS_DELIVERED = 'delivered'
STATUS_CANCELLED = 'cancelled'

ORDER_STATUSES = (
    STATUS_PENDING,
    STATUS_CONFIRMED,
    STATUS_PREPARING,
    STATUS_READY,
    STATUS_PICKED_UP,
    STATUS_OUT_FOR_DELIVERY,
    STATUS_DELIVERED,
    STATUS_CANCELLED
)
TERMINAL_ORDER_STATUSES = (STATUS_DELIVERED, STATUS_CANCELLED)
CANCELLABLE_ORDER_STATUSES = (STATUS_PENDING, STATUS_CONFIRMED, STATUS_PREPARING)
DRIVER_ACTIVE_ORDER_STATUSES = (STATUS_PICKED_UP, STATUS_OUT_FOR_DELIVERY)
RESTAURANT_NEW_ORDER_STATUSES = (STATUS_PENDING,)
RESTAURANT_IN_PROGRESS_ORDER_STATUSES = (STATUS_CONFIRMED, STATUS_PREPARING, STATUS_READY)

# Payment
PAYMENT_CASH = 'cash'
PAYMENT_BANK_TRANSFER = 'bank_transfer'
PAYMENT_METHODS = (PAYMENT_CASH, PAYMENT_BANK_TRANSFER)

# Share of the order total shown to drivers as their delivery fee
DRIVER_FEE_RATE = Decimal('0.10')

# Driver pool fallback poll, seconds. Pool views may lag the store by up to this interval.
AVAILABLE_POOL_POLL_INTERVAL = int(os.environ.get('AVAILABLE_POOL_POLL_INTERVAL', 30))

STORAGE_BACKEND_MEMORY = 'memory'
STORAGE_BACKEND_DYNAMODB = 'dynamodb'

IDENTITY_PROVIDER_LOCAL = 'local'
IDENTITY_PROVIDER_COGNITO = 'cognito'
