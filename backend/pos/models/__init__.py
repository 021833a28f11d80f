from pos.db.base import Base  # noqa: F401
from pos.models.coupons import Coupon, CouponType, DishCoupon  # noqa: F401
