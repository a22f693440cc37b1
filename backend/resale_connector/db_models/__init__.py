from resale_connector.db_models.user import User
from resale_connector.db_models.order import EbaySale
from resale_connector.db_models.listing import EbayListing
from resale_connector.db_models.payout import EbayPayout
from resale_connector.db_models.item import Item
from resale_connector.db_models.sale import Sale
from resale_connector.db_models.inventory_item import InventoryItem
from resale_connector.db_models.deposit import Deposit

__all__ = [
    "User",
    "EbaySale",
    "EbayListing",
    "EbayPayout",
    "Item",
    "Sale",
    "InventoryItem",
    "Deposit",
]
