# storefront/services/category_service.py
from typing import Any, Dict

from storefront.data.models import CategoryModel
from storefront.domain.schemas import CategoryOut
from storefront.services.crud_service import CrudService
from storefront.utils.slug import slugify


class CategoryService(CrudService):
    model = CategoryModel
    schema = CategoryOut
    label = "kategoria"

    def prepare(self, data: Dict[str, Any]) -> Dict[str, Any]:
        # slug zawsze z nazwy
        if data.get("name"):
            data = {**data, "slug": slugify(data["name"])}
        return data

    def update_name(self, category_id: int, name: str) -> Dict[str, Any]:
        return self.update(category_id, {"name": name})

    def update_image(self, category_id: int, image: str, image_url: str | None) -> Dict[str, Any]:
        return self.update(category_id, {"image": image, "image_url": image_url})
