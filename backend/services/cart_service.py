# backend/services/cart_service.py
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from database import transaction
from models.cart import Cart, CartItem
from models.restaurant import Restaurant, MenuItem
from models.users import User
from utils.errors import BadRequestException, ConflictException, NotFoundException

logger = logging.getLogger(__name__)


def cart_subtotal(cart: Cart) -> Decimal:
    return sum((item.line_total for item in cart.items), Decimal("0.00"))


class CartService:
    """Carts and their line items.

    A cart belongs to exactly one restaurant and holds at most one line per
    menu item. Lines keep the price the item had when it was first added.
    Carts with an owner are only visible to that owner; anonymous carts are
    reachable by id.
    """

    def __init__(self, db: Session):
        self.db = db

    @staticmethod
    def _visible_to(cart: Cart, user: Optional[User]) -> bool:
        return cart.user_id is None or (user is not None and cart.user_id == user.id)

    def _touch(self, cart: Cart):
        cart.updated_at = datetime.now(timezone.utc)

    def get_cart(self, cart_id: int, user: Optional[User] = None) -> Cart:
        cart = (
            self.db.query(Cart)
            .options(joinedload(Cart.items).joinedload(CartItem.menu_item))
            .filter(Cart.id == cart_id)
            .first()
        )
        if not cart or not self._visible_to(cart, user):
            raise NotFoundException("Cart not found")
        return cart

    def list_user_carts(self, user: User) -> List[Cart]:
        return (
            self.db.query(Cart)
            .options(joinedload(Cart.items).joinedload(CartItem.menu_item))
            .filter(Cart.user_id == user.id)
            .order_by(Cart.created_at.desc(), Cart.id.desc())
            .all()
        )

    def create_cart(self, restaurant_id: int, user: Optional[User] = None) -> Cart:
        restaurant = self.db.query(Restaurant).filter(Restaurant.id == restaurant_id).first()
        if not restaurant or not restaurant.is_active:
            raise NotFoundException("Restaurant not found")

        if user is not None:
            existing = self.db.query(Cart).filter(
                Cart.user_id == user.id, Cart.restaurant_id == restaurant_id
            ).first()
            if existing:
                raise ConflictException(
                    "You already have a cart for this restaurant",
                    data={"cart_id": existing.id},
                )

        cart = Cart(restaurant_id=restaurant.id, user_id=user.id if user else None)
        try:
            with transaction(self.db):
                self.db.add(cart)
        except IntegrityError as e:
            # A parallel request won the unique (user_id, restaurant_id) slot
            raise ConflictException("You already have a cart for this restaurant", cause=e)

        self.db.refresh(cart)
        logger.info("Cart %s created for restaurant %s (user=%s)", cart.id, restaurant.id, cart.user_id)
        return cart

    def delete_cart(self, cart_id: int, user: Optional[User] = None):
        cart = self.get_cart(cart_id, user)
        with transaction(self.db):
            self.db.delete(cart)

    def add_item(self, cart_id: int, menu_item_id: int, quantity: int, user: Optional[User] = None) -> Cart:
        if quantity < 1:
            raise BadRequestException("Quantity must be at least 1")

        cart = self.get_cart(cart_id, user)
        menu_item = self.db.query(MenuItem).filter(MenuItem.id == menu_item_id).first()
        if not menu_item:
            raise NotFoundException("Menu item not found")
        if menu_item.restaurant_id != cart.restaurant_id:
            raise BadRequestException("Menu item belongs to a different restaurant than the cart")
        if not menu_item.is_available:
            raise BadRequestException("Menu item is not available")

        item = self.db.query(CartItem).filter(
            CartItem.cart_id == cart.id, CartItem.menu_item_id == menu_item.id
        ).first()

        try:
            with transaction(self.db):
                if item:
                    # Merge into the existing line; its price_at_add stays as first captured
                    item.quantity = CartItem.quantity + quantity
                else:
                    self.db.add(CartItem(
                        cart_id=cart.id,
                        menu_item_id=menu_item.id,
                        quantity=quantity,
                        price_at_add=menu_item.price,
                    ))
                self._touch(cart)
        except IntegrityError as e:
            raise ConflictException("Cart was modified concurrently, please retry", cause=e)

        return self.get_cart(cart.id, user)

    def _get_item(self, cart_item_id: int, user: Optional[User]) -> CartItem:
        item = self.db.query(CartItem).filter(CartItem.id == cart_item_id).first()
        if not item or not self._visible_to(item.cart, user):
            raise NotFoundException("Cart item not found")
        return item

    def update_item(self, cart_item_id: int, quantity: int, user: Optional[User] = None) -> Cart:
        if quantity < 1:
            raise BadRequestException("Quantity must be at least 1")
        item = self._get_item(cart_item_id, user)
        cart = item.cart
        with transaction(self.db):
            item.quantity = quantity
            self._touch(cart)
        return self.get_cart(cart.id, user)

    def remove_item(self, cart_item_id: int, user: Optional[User] = None) -> Cart:
        item = self._get_item(cart_item_id, user)
        cart = item.cart
        with transaction(self.db):
            cart.items.remove(item)
            self._touch(cart)
        return self.get_cart(cart.id, user)
