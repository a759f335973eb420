from .auth import User, SessionToken
from .catalog import Driver, DeliveryRoute, Customer, Product, LossReason, CustomerPrice
from .routes import RouteAssignment
from .summaries import DriverDailySummary, ReconciliationEvent
from .sales import DriverSale, DriverSaleItem
from .stock import LoadingBatch, LoadingBatchItem, ProductReturn

__all__ = [
    'User', 'SessionToken',
    'Driver', 'DeliveryRoute', 'Customer', 'Product', 'LossReason', 'CustomerPrice',
    'RouteAssignment',
    'DriverDailySummary', 'ReconciliationEvent',
    'DriverSale', 'DriverSaleItem',
    'LoadingBatch', 'LoadingBatchItem', 'ProductReturn',
]
