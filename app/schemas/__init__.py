from app.schemas.common import Pagination, Address
from app.schemas.user import UserCreate, UserLogin, UserUpdate, UserResponse, AuthResponse
from app.schemas.category import CategoryCreate, CategoryUpdate, CategoryResponse, CategoryRef
from app.schemas.product import ProductCreate, ProductUpdate, ProductResponse, ProductSummary
from app.schemas.cart import CartItemCreate, CartItemUpdate, CouponApply, ShippingUpdate, CartResponse
from app.schemas.order import OrderCreate, OrderStatusUpdate, OrderResponse
from app.schemas.payment import PaymentProcess, RefundCreate, PaymentResponse
from app.schemas.review import ReviewCreate, ReviewUpdate, ReviewResponse
from app.schemas.coupon import CouponCreate, CouponResponse
