from storefront.utils.clock import utcnow
from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session, select
from storefront.constants.product_status import PUBLISHED
from storefront.database import get_session
from storefront.models.cart import CartItem
from storefront.models.product import Product
from storefront.models.user import User
from storefront.schemas.cart_schemas import CartAddRequest, CartUpdateRequest
from storefront.utils.token import get_current_user  # JWT dependency


router = APIRouter()


def _check_available(product: Product, quantity: int):
    if not product or product.status != PUBLISHED:
        raise HTTPException(status_code=404, detail="Product not available")
    if product.stock < quantity:
        raise HTTPException(400, f"Only {product.stock} left in stock")


# Add to Cart

@router.post("/add")
def add_to_cart(
    data: CartAddRequest,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user)
):
    product = session.get(Product, data.product_id)

    # Check if the user already has this item
    existing_item = session.exec(
        select(CartItem).where(
            CartItem.user_id == current_user.id,
            CartItem.product_id == data.product_id
        )
    ).first()

    if existing_item:
        # Increase quantity
        quantity = existing_item.quantity + data.quantity
        _check_available(product, quantity)

        existing_item.quantity = quantity
        existing_item.price = product.price
        existing_item.updated_at = utcnow()
        session.add(existing_item)
        session.commit()
        session.refresh(existing_item)
        return {"message": "Cart updated", "item": existing_item}

    _check_available(product, data.quantity)

    new_item = CartItem(
        user_id=current_user.id,
        product_id=product.id,
        quantity=data.quantity,
        price=product.price,
    )

    session.add(new_item)
    session.commit()
    session.refresh(new_item)

    return {"message": "Added to cart", "item": new_item}


# View Cart

@router.get("/")
def get_cart(
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user)
):
    rows = session.exec(
        select(CartItem, Product)
        .join(Product, CartItem.product_id == Product.id)
        .where(CartItem.user_id == current_user.id)
        .order_by(CartItem.id)
    ).all()

    items_response = []
    subtotal = 0

    for cart_item, product in rows:
        line_total = product.price * cart_item.quantity
        subtotal += line_total

        items_response.append({
            "item_id": cart_item.id,
            "product_id": product.id,
            "name": product.name,
            "price": product.price,
            "price_changed": product.price != cart_item.price,
            "quantity": cart_item.quantity,
            "stock": product.stock,
            "in_stock": product.in_stock,
            "status": product.status,
            "total": line_total
        })

    return {
        "items": items_response,
        "subtotal": subtotal,
    }

# Update Cart
@router.put("/update/{item_id}")
def update_cart_item(
    item_id: int,
    data: CartUpdateRequest,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user)
):
    item = session.get(CartItem, item_id)

    if not item or item.user_id != current_user.id:
        raise HTTPException(404, "Cart item not found")

    if data.quantity <= 0:
        session.delete(item)
        session.commit()
        return {"message": "Item removed"}

    product = session.get(Product, item.product_id)
    _check_available(product, data.quantity)

    item.quantity = data.quantity
    item.price = product.price
    item.updated_at = utcnow()
    session.add(item)
    session.commit()
    session.refresh(item)

    return {"message": "Quantity updated", "item": item}

# Remove Cart

@router.delete("/remove/{item_id}")
def remove_item(
    item_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user)
):
    item = session.get(CartItem, item_id)

    if not item or item.user_id != current_user.id:
        raise HTTPException(404, "Item not found")

    session.delete(item)
    session.commit()

    return {"message": "Item removed from cart"}

# Clear Cart
def clear_cart(session: Session, user_id: int):
    items = session.exec(
        select(CartItem).where(CartItem.user_id == user_id)
    ).all()

    for item in items:
        session.delete(item)

    session.commit()


@router.delete("/clear")
def clear_cart_endpoint(
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user)
):
    clear_cart(session, current_user.id)
    return {"message": "Cart cleared"}
