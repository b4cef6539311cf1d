from decimal import Decimal
from typing import Dict, Any
from sqlalchemy.orm import Session
from storefront.data.models import CartModel, CartItemModel, ProductModel
from storefront.repos.cart_repo import CartRepo
from storefront.services.lock_service import LockService
from storefront.utils.errors import ConflictError, NotFoundError, ValidationFailure
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

class CartService:
    """
    Prosta implementacja cqrs dla domeny cart
    commands (create, add, remove) modyfikuja stan
    query (get) tylko odczyt
    """

    def __init__(self, db: Session, lock_service: LockService):
        self.db = db
        self.repo = CartRepo(db)
        self.lock_service = lock_service

    #query - odczyt
    def get_cart(self, cart_id: int, user_id: int) -> Dict[str, Any] | None:
        cart = self.repo.get_cart(cart_id)

        if not cart:
            return None

        if cart.user_id != user_id:
            raise PermissionError("Brak dostepu do koszyka")

        return self._to_dict(cart)

    #commands
    def create_cart(self, user_id: int) -> Dict[str, Any]:
        #user ma jeden koszyk, jesli jest to go zwracamy
        existing = self.repo.get_cart_by_user(user_id)

        if existing:
            logger.info(f"Uzytkownik o ID {user_id} ma juz koszyk {existing.id}")
            return self._to_dict(existing)

        created = self.repo.create_cart(
            CartModel(user_id=user_id, total_cart_price=Decimal("0.00"), version=1)
        )

        logger.info(f"Utworzono nowy koszyk {created.id} dla użytkownika {user_id}")
        return self._to_dict(created)

    def add_product(
        self,
        user_id: int,
        cart_id: int,
        product_id: int,
        quantity: int,
        color: str | None = None,
    ) -> Dict[str, Any]:

        if quantity <= 0:
            raise ValidationFailure("Ilosc musi być wieksza niz 0")

        cart = self._get_modifiable_cart(cart_id, user_id)

        product = self.db.get(ProductModel, product_id)
        if not product:
            raise NotFoundError(f"Nie znaleziono produktu o id {product_id}")

        existing_item = self.repo.get_cart_item(cart_id, product_id)
        new_quantity = quantity + (existing_item.quantity if existing_item else 0)

        if new_quantity > product.quantity:
            raise ValidationFailure(f"Brak wystarczajacej ilosci produktu {product_id}")

        if existing_item:
            logger.info(
                f"Produkt {product_id} już jest w koszyku, zwiekszam ilosc "
                f"z {existing_item.quantity} do {new_quantity}"
            )
            existing_item.quantity = new_quantity
            existing_item.price = product.price  # update ceny
            if color:
                existing_item.color = color
        else:
            logger.info(f"Dodaje nowy produkt {product_id} do koszyka {cart_id}")
            self.repo.add_cart_item(
                CartItemModel(
                    cart_id=cart_id,
                    product_id=product_id,
                    quantity=quantity,
                    price=product.price,
                    color=color,
                )
            )

        self._bump_version(cart)

        logger.info(f"Produkt {product_id} dodany do koszyka {cart_id}, nowa wersja: {cart.version}")
        return self.get_cart(cart_id, user_id)

    def remove_product(self, user_id: int, cart_id: int, product_id: int) -> Dict[str, Any]:
        cart = self._get_modifiable_cart(cart_id, user_id)

        logger.info(f"Usuwanie produktu {product_id} z koszyka {cart_id}")

        if self.repo.delete_cart_item(cart_id, product_id) == 0:
            raise NotFoundError(f"Produktu {product_id} nie ma w koszyku")

        self._bump_version(cart)

        logger.info(f"Produkt {product_id} usunięty z koszyka {cart_id}, nowa wersja: {cart.version}")
        return self.get_cart(cart_id, user_id)

    def update_quantity(
        self,
        user_id: int,
        cart_id: int,
        product_id: int,
        quantity: int,
    ) -> Dict[str, Any]:
        if quantity <= 0:
            raise ValidationFailure("Ilosc musi być wieksza niz 0")

        cart = self._get_modifiable_cart(cart_id, user_id)

        item = self.repo.get_cart_item(cart_id, product_id)
        if not item:
            raise NotFoundError(f"Produktu {product_id} nie ma w koszyku")

        if quantity > item.product.quantity:
            raise ValidationFailure(f"Brak wystarczajacej ilosci produktu {product_id}")

        item.quantity = quantity
        item.price = item.product.price
        self._bump_version(cart)

        logger.info(f"Koszyk {cart_id}: produkt {product_id} ilosc {quantity}")
        return self.get_cart(cart_id, user_id)

    def clear_cart(self, user_id: int, cart_id: int) -> Dict[str, Any]:
        cart = self._get_modifiable_cart(cart_id, user_id)

        removed = self.repo.delete_cart_items(cart_id)
        self._bump_version(cart)

        logger.info(f"Koszyk {cart_id} wyczyszczony, usunieto {removed} pozycji")
        return self.get_cart(cart_id, user_id)

    def _get_modifiable_cart(self, cart_id: int, user_id: int) -> CartModel:
        cart = self.repo.get_cart(cart_id)

        if not cart:
            raise NotFoundError(f"Nie znaleziono koszyka o id {cart_id}")

        if cart.user_id != user_id:
            raise PermissionError("Brak dostępu do koszyka")

        # koszyk w trakcie platnosci karta jest zamrozony
        if self.lock_service.is_checkout_pending(cart_id):
            raise ConflictError("Koszyk nie może być modyfikowany w trakcie płatności")

        return cart

    def _bump_version(self, cart: CartModel) -> None:
        items = self.repo.get_cart_items(cart.id)
        total = sum((i.price * i.quantity for i in items), Decimal("0.00"))

        # Optimistic locking
        # np w bazie update set version 2 where id 1 and version 1
        rowcount = self.repo.update_cart_version(
            cart_id=cart.id,
            old_version=cart.version,
            new_data={
                "version": cart.version + 1,
                "total_cart_price": total,
                #zmiana koszyka kasuje rabat
                "total_price_after_discount": None,
            },
        )

        if rowcount == 0:
            self.repo.rollback()
            raise ConflictError(
                "Konflikt wspolbieznosci - koszyk zostal zmodyfikowany przez inna operacje"
            )

        self.repo.commit()

    @staticmethod
    def _to_dict(cart: CartModel) -> Dict[str, Any]:
        return {
            "cart_id": cart.id,
            "user_id": cart.user_id,
            "items": [
                {
                    "product_id": i.product_id,
                    "quantity": i.quantity,
                    "price": i.price,
                    "color": i.color,
                }
                for i in cart.items
            ],
            "total_cart_price": cart.total_cart_price,
            "total_price_after_discount": cart.total_price_after_discount,
            "version": cart.version,
        }
