from app.models.user import User, UserRole
from app.models.category import Category
from app.models.product import Product, ProductStatus, product_categories
from app.models.cart import Cart, CartItem
from app.models.coupon import Coupon
from app.models.order import Order, OrderItem, OrderStatus, PaymentStatus
from app.models.payment import Payment, PaymentRefund, PaymentGateway, PaymentRecordStatus
from app.models.review import Review
