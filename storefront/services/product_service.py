# storefront/services/product_service.py
from typing import Any, Dict

from storefront.data.models import CategoryModel, ProductModel
from storefront.domain.schemas import ProductOut
from storefront.services.crud_service import CrudService
from storefront.utils.errors import NotFoundError
from storefront.utils.slug import slugify


class ProductService(CrudService):
    model = ProductModel
    schema = ProductOut
    label = "produkt"

    def prepare(self, data: Dict[str, Any]) -> Dict[str, Any]:
        category_id = data.get("category_id")
        if category_id is not None and not self.db.get(CategoryModel, category_id):
            raise NotFoundError(f"Nie znaleziono kategorii o id {category_id}")

        if data.get("title"):
            data = {**data, "slug": slugify(data["title"])}
        return data
