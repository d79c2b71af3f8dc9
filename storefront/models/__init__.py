from storefront.models.user import User
from storefront.models.address import Address
from storefront.models.token_blacklist import TokenBlacklist
from storefront.models.category import Category
from storefront.models.product import Product
from storefront.models.cart import CartItem
from storefront.models.order_item import OrderItem
from storefront.models.order_event import OrderStatusEvent
from storefront.models.order import Order
from storefront.models.review import Review

# add ALL models here
