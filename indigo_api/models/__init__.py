"""SQLAlchemy ORM models.

Models represent database tables:
- products, articles: storefront catalogue and culture stories
- cart_items, orders, order_items: checkout
- favorites, profiles: per-user data
- courses, course_chapters, course_comments, course_likes, enrollments: teaching
- cloths, cloth_scores, player_profiles: mini-game progression
- user_inventory, user_shops, shop_listings, market_transactions, user_items: game economy
- task_templates, user_task_progress, user_achievements: tasks
"""

from indigo_api.models.article import Article
from indigo_api.models.cart import CartItem
from indigo_api.models.cloth import Cloth, ClothScore, ClothStatus
from indigo_api.models.course import (
    Course,
    CourseChapter,
    CourseComment,
    CourseLike,
    CourseStatus,
    Enrollment,
    EnrollmentStatus,
)
from indigo_api.models.favorite import Favorite
from indigo_api.models.inventory import SlotType, UserInventory
from indigo_api.models.item import UserItem
from indigo_api.models.order import Order, OrderItem, OrderStatus
from indigo_api.models.player import PlayerProfile
from indigo_api.models.product import Product
from indigo_api.models.profile import Profile
from indigo_api.models.shop import ListingStatus, MarketTransaction, ShopListing, TransactionType, UserShop
from indigo_api.models.task import TaskTemplate, UserAchievement, UserTaskProgress

__all__ = [
    "Article",
    "CartItem",
    "Cloth",
    "ClothScore",
    "ClothStatus",
    "Course",
    "CourseChapter",
    "CourseComment",
    "CourseLike",
    "CourseStatus",
    "Enrollment",
    "EnrollmentStatus",
    "Favorite",
    "ListingStatus",
    "MarketTransaction",
    "Order",
    "OrderItem",
    "OrderStatus",
    "PlayerProfile",
    "Product",
    "Profile",
    "ShopListing",
    "SlotType",
    "TaskTemplate",
    "TransactionType",
    "UserAchievement",
    "UserInventory",
    "UserItem",
    "UserShop",
    "UserTaskProgress",
]
