# backend/routes/cart.py
from typing import List, Optional
from fastapi import APIRouter, Depends, Request, status

from utils.tokenJWT import get_current_user, get_optional_user
from utils.audit import write_log, client_ip
from models.users import User
from models.cart import Cart
from schemas.cart import CartAddItem, CartUpdateItem, CartOut, CartItemOut
from services.cart_service import CartService, cart_subtotal
from services.deps import get_cart_service

router = APIRouter(tags=["Cart"])


def _cart_to_out(cart: Cart) -> CartOut:
    items_out = []
    for it in cart.items:
        items_out.append(CartItemOut(
            id=it.id,
            menu_item_id=it.menu_item_id,
            name=it.menu_item.name if it.menu_item else "",
            quantity=it.quantity,
            price_at_add=float(it.price_at_add),
            line_total=float(it.line_total),
            added_at=it.added_at,
        ))

    return CartOut(
        id=cart.id,
        restaurant_id=cart.restaurant_id,
        user_id=cart.user_id,
        items=items_out,
        subtotal=float(cart_subtotal(cart)),
        created_at=cart.created_at,
        updated_at=cart.updated_at,
    )


def _log(carts: CartService, user: Optional[User], action: str, cart_id: int, request: Request, **meta):
    write_log(
        carts.db,
        user_id=user.id if user else None,
        action=action,
        resource="cart",
        resource_id=cart_id,
        ip=client_ip(request),
        meta=meta,
    )


# Open a cart for a restaurant; anonymous callers get an ownerless cart
@router.post("/carts/{restaurant_id}", response_model=CartOut, status_code=status.HTTP_201_CREATED)
def create_cart(
    restaurant_id: int,
    request: Request,
    current_user: Optional[User] = Depends(get_optional_user),
    carts: CartService = Depends(get_cart_service),
):
    out = _cart_to_out(carts.create_cart(restaurant_id, current_user))
    _log(carts, current_user, "CART_CREATE", out.id, request, restaurant_id=restaurant_id)
    return out


@router.get("/carts", response_model=List[CartOut])
def list_my_carts(
    current_user: User = Depends(get_current_user),
    carts: CartService = Depends(get_cart_service),
):
    return [_cart_to_out(c) for c in carts.list_user_carts(current_user)]


@router.get("/carts/{cart_id}", response_model=CartOut)
def get_cart(
    cart_id: int,
    current_user: Optional[User] = Depends(get_optional_user),
    carts: CartService = Depends(get_cart_service),
):
    return _cart_to_out(carts.get_cart(cart_id, current_user))


@router.delete("/carts/{cart_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_cart(
    cart_id: int,
    request: Request,
    current_user: Optional[User] = Depends(get_optional_user),
    carts: CartService = Depends(get_cart_service),
):
    carts.delete_cart(cart_id, current_user)
    _log(carts, current_user, "CART_DELETE", cart_id, request)


@router.post("/carts/{cart_id}/items", response_model=CartOut)
def add_to_cart(
    cart_id: int,
    payload: CartAddItem,
    request: Request,
    current_user: Optional[User] = Depends(get_optional_user),
    carts: CartService = Depends(get_cart_service),
):
    out = _cart_to_out(carts.add_item(cart_id, payload.menu_item_id, payload.quantity, current_user))
    _log(carts, current_user, "CART_ADD", cart_id, request,
         menu_item_id=payload.menu_item_id, quantity=payload.quantity, subtotal=out.subtotal)
    return out


@router.patch("/cart-items/{item_id}", response_model=CartOut)
def update_cart_item(
    item_id: int,
    payload: CartUpdateItem,
    request: Request,
    current_user: Optional[User] = Depends(get_optional_user),
    carts: CartService = Depends(get_cart_service),
):
    out = _cart_to_out(carts.update_item(item_id, payload.quantity, current_user))
    _log(carts, current_user, "CART_UPDATE", out.id, request, item_id=item_id, quantity=payload.quantity)
    return out


@router.delete("/cart-items/{item_id}", response_model=CartOut)
def delete_cart_item(
    item_id: int,
    request: Request,
    current_user: Optional[User] = Depends(get_optional_user),
    carts: CartService = Depends(get_cart_service),
):
    out = _cart_to_out(carts.remove_item(item_id, current_user))
    _log(carts, current_user, "CART_REMOVE", out.id, request, item_id=item_id, subtotal=out.subtotal)
    return out
