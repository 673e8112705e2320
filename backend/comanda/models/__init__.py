from .tenancy import Restaurant
from .auth import User, SessionToken
from .inventory import Ingredient, StockMovement, Supplier
from .catalog import (
    ProductionArea, Semifinished, SemifinishedIngredient,
    Recipe, RecipeComponent, Product, ProductComponent,
)
from .dining import Client, Table, Order, OrderLine
from .sales import Sale, SaleLine
from .purchasing import Purchase, PurchaseLine
from .cash import CashRegister, CashTransaction
from .documents import DocumentSequence

__all__ = [
    'Restaurant',
    'User', 'SessionToken',
    'Ingredient', 'StockMovement', 'Supplier',
    'ProductionArea', 'Semifinished', 'SemifinishedIngredient',
    'Recipe', 'RecipeComponent', 'Product', 'ProductComponent',
    'Client', 'Table', 'Order', 'OrderLine',
    'Sale', 'SaleLine',
    'Purchase', 'PurchaseLine',
    'CashRegister', 'CashTransaction',
    'DocumentSequence',
]
