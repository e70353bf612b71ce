# serializers.py
"""Outward JSON views of the stored entities, in the frontend's camelCase."""

from typing import Any, Dict, Optional

from designspace.models import Collaborator, Design, DesignFile, Furniture, Project, Template, User


def ok(data: Optional[Dict[str, Any]] = None, message: Optional[str] = None) -> Dict[str, Any]:
    """The success envelope."""
    body: Dict[str, Any] = {"success": True}
    if message:
        body["message"] = message
    if data is not None:
        body["data"] = data
    return body


def user_brief(user: Optional[User]) -> Optional[Dict[str, Any]]:
    if user is None:
        return None
    return {"id": user.id, "email": user.email, "firstName": user.first_name, "lastName": user.last_name}


def collaborator_out(collaborator: Collaborator, users: Dict[Any, User] = None) -> Dict[str, Any]:
    out = {"user": collaborator.user_id, "role": collaborator.role, "addedAt": collaborator.added_at}
    if users and collaborator.user_id in users:
        out["user"] = user_brief(users[collaborator.user_id])
    return out


def project_out(project: Project, users: Dict[Any, User] = None) -> Dict[str, Any]:
    """`users` (id to User) expands owner and collaborator ids into brief profiles."""
    users = users or {}
    return {
        "id": project.id,
        "name": project.name,
        "description": project.description,
        "owner": user_brief(users[project.owner_id]) if project.owner_id in users else project.owner_id,
        "collaborators": [collaborator_out(c, users) for c in project.collaborators],
        "settings": project.settings,
        "thumbnail": project.thumbnail,
        "tags": project.tags,
        "isPublic": project.is_public,
        "isTemplate": project.is_template,
        "templateCategory": project.template_category,
        "status": project.status,
        "version": project.version,
        "lastModified": project.last_modified,
        "createdAt": project.created_at,
        "updatedAt": project.updated_at,
    }


def design_summary(design: Design) -> Dict[str, Any]:
    return {
        "id": design.id,
        "name": design.name,
        "description": design.description,
        "version": design.version,
        "thumbnail": design.thumbnail,
        "status": design.status,
        "createdAt": design.created_at,
        "updatedAt": design.updated_at,
    }


def design_out(design: Design) -> Dict[str, Any]:
    return {
        **design_summary(design),
        "project": design.project_id,
        "settings": design.settings,
        "elements": design.elements,
        "furniture": design.furniture,
        "layers": design.layers,
        "camera": design.camera,
        "environment": design.environment,
        "metadata": {
            "totalArea": design.total_area,
            "totalCost": design.total_cost,
            "furnitureCount": design.furniture_count,
            "lastRendered": design.last_rendered,
        },
        "isTemplate": design.is_template,
        "templateCategory": design.template_category,
        "isPublic": design.is_public,
        "tags": design.tags,
        "renderImages": design.render_images,
        "lastModified": design.last_modified,
    }


def template_out(template: Template, detail: bool = True) -> Dict[str, Any]:
    out = {
        "id": template.id,
        "name": template.name,
        "description": template.description,
        "category": template.category,
        "subcategory": template.subcategory,
        "difficulty": template.difficulty,
        "estimatedTime": template.estimated_time,
        "roomSize": template.room_size,
        "thumbnail": template.thumbnail,
        "images": template.images,
        "tags": template.tags,
        "style": template.style,
        "colorScheme": template.color_scheme,
        "metadata": {
            "totalArea": template.total_area,
            "totalCost": template.total_cost,
            "furnitureCount": template.furniture_count,
            "wallCount": template.wall_count,
            "windowCount": template.window_count,
        },
        "requirements": {"subscription": template.required_subscription, "features": template.features},
        "isFeatured": template.is_featured,
        "isPremium": template.is_premium,
        "popularity": template.popularity,
        "usageCount": template.usage_count,
        "rating": {"average": template.rating_average, "count": template.rating_count},
        "createdAt": template.created_at,
    }
    if detail:
        out.update({"furniture": template.furniture, "walls": template.walls, "windows": template.windows})
    return out


def furniture_out(item: Furniture) -> Dict[str, Any]:
    return {
        "id": item.id,
        "name": item.name,
        "description": item.description,
        "category": item.category,
        "subcategory": item.subcategory,
        "type": item.type,
        "brand": item.brand,
        "model": item.model,
        "style": item.style,
        "price": item.price,
        "currency": item.currency,
        "dimensions": item.dimensions,
        "weight": item.weight,
        "materials": item.materials,
        "colors": item.colors,
        "defaultColor": item.default_color(),
        "images": item.images,
        "model3D": item.model_3d,
        "specifications": item.specifications,
        "features": item.features,
        "tags": item.tags,
        "availability": {"inStock": item.in_stock, "quantity": item.quantity, "leadTime": item.lead_time},
        "pricing": {
            "retail": item.retail_price,
            "wholesale": item.wholesale_price,
            "sale": item.sale_price,
            "saleStartDate": item.sale_start,
            "saleEndDate": item.sale_end,
        },
        "currentPrice": item.current_price(),
        "discountPercentage": item.discount_percentage(),
        "isAvailable": item.is_available(),
        "rating": {"average": item.rating_average, "count": item.rating_count},
        "isFeatured": item.is_featured,
        "isPremium": item.is_premium,
        "popularity": item.popularity,
        "createdAt": item.created_at,
    }


def design_file_out(design_file: DesignFile) -> Dict[str, Any]:
    return {
        "id": design_file.id,
        "user": design_file.user_id,
        "name": design_file.name,
        "description": design_file.description,
        "sceneData": design_file.scene_data,
        "createdAt": design_file.created_at,
        "updatedAt": design_file.updated_at,
    }
