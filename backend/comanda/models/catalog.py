from __future__ import annotations

from ..extensions import db
from ..money import as_float
from .mixins import RecordStatusMixin, TimestampMixin
from comanda.time_utils import to_utc_z

SEMIFINISHED_CATEGORIES = ("salsas", "masas", "rellenos", "bases", "aderezos", "marinadas", "otros")
RECIPE_CATEGORIES = (
    "entradas", "platos_principales", "postres", "bebidas",
    "salsas", "guarniciones", "otros",
)


def _ingredient_ref(ingredient) -> dict | None:
    if ingredient is None:
        return None
    return {
        "id": ingredient.id,
        "name": ingredient.name,
        "unit": ingredient.unit,
        "unit_cost": as_float(ingredient.unit_cost),
        "current_stock": as_float(ingredient.current_stock),
    }


def _semifinished_ref(semi) -> dict | None:
    if semi is None:
        return None
    return {
        "id": semi.id,
        "name": semi.name,
        "yield_unit": semi.yield_unit,
        "unit_cost": as_float(semi.unit_cost),
    }


class ProductionArea(RecordStatusMixin, TimestampMixin, db.Model):
    """Kitchen station (grill, bar, pastry) that prepares products."""
    __tablename__ = "production_areas"
    __table_args__ = (
        db.UniqueConstraint("restaurant_id", "name", name="uq_production_areas_restaurant_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    restaurant_id = db.Column(db.Integer, db.ForeignKey("restaurants.id"), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    description = db.Column(db.Text, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "restaurant_id": self.restaurant_id,
            "name": self.name,
            "description": self.description,
            "record_status": self.record_status,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Semifinished(RecordStatusMixin, TimestampMixin, db.Model):
    """
    Prepared intermediate (sauce, dough) composed only of ingredients.

    COST:
    - calculated_cost = sum(ingredient.unit_cost * quantity) over lines
    - unit_cost = calculated_cost / yield_quantity

    Lines reference ingredients only, which keeps the cost graph acyclic:
    Recipe/Product -> Semifinished -> Ingredient.
    """
    __tablename__ = "semifinished"
    __table_args__ = (
        db.UniqueConstraint("restaurant_id", "name", name="uq_semifinished_restaurant_name"),
        db.CheckConstraint("yield_quantity > 0", name="ck_semifinished_yield_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    restaurant_id = db.Column(db.Integer, db.ForeignKey("restaurants.id"), nullable=False, index=True)

    name = db.Column(db.String(120), nullable=False)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(32), nullable=False, default="otros")

    yield_quantity = db.Column(db.Numeric(12, 3), nullable=False, default=1)
    yield_unit = db.Column(db.String(16), nullable=False, default="unidad")

    calculated_cost = db.Column(db.Numeric(12, 4), nullable=False, default=0)
    unit_cost = db.Column(db.Numeric(12, 4), nullable=False, default=0)
    last_cost_calculation = db.Column(db.DateTime(timezone=True), nullable=True)

    preparation_time = db.Column(db.Integer, nullable=True)  # minutes
    instructions = db.Column(db.Text, nullable=True)

    lines = db.relationship(
        "SemifinishedIngredient",
        back_populates="semifinished",
        cascade="all, delete-orphan",
        order_by="SemifinishedIngredient.position",
    )

    def __repr__(self) -> str:
        return f"<Semifinished id={self.id} name={self.name!r} unit_cost={self.unit_cost}>"

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "restaurant_id": self.restaurant_id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "yield_quantity": as_float(self.yield_quantity),
            "yield_unit": self.yield_unit,
            "calculated_cost": as_float(self.calculated_cost),
            "unit_cost": as_float(self.unit_cost),
            "last_cost_calculation": to_utc_z(self.last_cost_calculation),
            "preparation_time": self.preparation_time,
            "instructions": self.instructions,
            "record_status": self.record_status,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_lines:
            data["ingredients"] = [line.to_dict() for line in self.lines]
        return data


class SemifinishedIngredient(db.Model):
    __tablename__ = "semifinished_ingredients"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    semifinished_id = db.Column(db.Integer, db.ForeignKey("semifinished.id"), nullable=False, index=True)
    ingredient_id = db.Column(db.Integer, db.ForeignKey("ingredients.id"), nullable=False, index=True)
    quantity = db.Column(db.Numeric(12, 3), nullable=False)
    unit = db.Column(db.String(16), nullable=True)
    position = db.Column(db.Integer, nullable=False, default=0)

    semifinished = db.relationship("Semifinished", back_populates="lines")
    ingredient = db.relationship("Ingredient")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "ingredient_id": self.ingredient_id,
            "ingredient": _ingredient_ref(self.ingredient),
            "quantity": as_float(self.quantity),
            "unit": self.unit or (self.ingredient.unit if self.ingredient else None),
        }


class Recipe(RecordStatusMixin, TimestampMixin, db.Model):
    """
    Sellable dish built from ingredients and semifinished goods.

    COST: calculated_cost = sum(component.unit_cost * quantity) across
    ingredient and semifinished lines. profit = selling_price - cost,
    profit_percentage = profit / selling_price * 100 (0 without a price).
    """
    __tablename__ = "recipes"
    __table_args__ = (
        db.UniqueConstraint("restaurant_id", "name", name="uq_recipes_restaurant_name"),
        db.Index("ix_recipes_restaurant_category", "restaurant_id", "category"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    restaurant_id = db.Column(db.Integer, db.ForeignKey("restaurants.id"), nullable=False, index=True)

    name = db.Column(db.String(120), nullable=False)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(32), nullable=False, default="otros")
    portions = db.Column(db.Integer, nullable=False, default=1)

    selling_price = db.Column(db.Numeric(12, 2), nullable=True)
    # Target margin the kitchen aims for; informational
    profit_margin = db.Column(db.Numeric(5, 2), nullable=True)

    calculated_cost = db.Column(db.Numeric(12, 4), nullable=False, default=0)
    profit = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    profit_percentage = db.Column(db.Numeric(7, 2), nullable=False, default=0)
    last_cost_calculation = db.Column(db.DateTime(timezone=True), nullable=True)

    preparation_time = db.Column(db.Integer, nullable=True)
    instructions = db.Column(db.Text, nullable=True)

    lines = db.relationship(
        "RecipeComponent",
        back_populates="recipe",
        cascade="all, delete-orphan",
        order_by="RecipeComponent.position",
    )

    @property
    def sale_price(self):
        return self.selling_price

    def __repr__(self) -> str:
        return f"<Recipe id={self.id} name={self.name!r} cost={self.calculated_cost}>"

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "restaurant_id": self.restaurant_id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "portions": self.portions,
            "selling_price": as_float(self.selling_price),
            "profit_margin": as_float(self.profit_margin),
            "calculated_cost": as_float(self.calculated_cost),
            "profit": as_float(self.profit),
            "profit_percentage": as_float(self.profit_percentage),
            "last_cost_calculation": to_utc_z(self.last_cost_calculation),
            "preparation_time": self.preparation_time,
            "instructions": self.instructions,
            "record_status": self.record_status,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_lines:
            data["ingredients"] = [c.to_dict() for c in self.lines if c.ingredient_id]
            data["semifinished"] = [c.to_dict() for c in self.lines if c.semifinished_id]
        return data


class RecipeComponent(db.Model):
    """A recipe line: exactly one of ingredient or semifinished."""
    __tablename__ = "recipe_components"
    __table_args__ = (
        db.CheckConstraint(
            "(ingredient_id IS NULL) <> (semifinished_id IS NULL)",
            name="ck_recipe_components_one_ref",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    recipe_id = db.Column(db.Integer, db.ForeignKey("recipes.id"), nullable=False, index=True)
    ingredient_id = db.Column(db.Integer, db.ForeignKey("ingredients.id"), nullable=True, index=True)
    semifinished_id = db.Column(db.Integer, db.ForeignKey("semifinished.id"), nullable=True, index=True)
    quantity = db.Column(db.Numeric(12, 3), nullable=False)
    unit = db.Column(db.String(16), nullable=True)
    position = db.Column(db.Integer, nullable=False, default=0)

    recipe = db.relationship("Recipe", back_populates="lines")
    ingredient = db.relationship("Ingredient")
    semifinished = db.relationship("Semifinished")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "ingredient_id": self.ingredient_id,
            "semifinished_id": self.semifinished_id,
            "ingredient": _ingredient_ref(self.ingredient),
            "semifinished": _semifinished_ref(self.semifinished),
            "quantity": as_float(self.quantity),
            "unit": self.unit,
        }


class Product(RecordStatusMixin, TimestampMixin, db.Model):
    """
    Menu product priced from a base price and a margin.

    final_price = base_price * (1 + margin_percentage / 100)
    total_cost rolls up gross quantities (waste included) of its lines.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("restaurant_id", "name", name="uq_products_restaurant_name"),
        db.Index("ix_products_restaurant_category", "restaurant_id", "category"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    restaurant_id = db.Column(db.Integer, db.ForeignKey("restaurants.id"), nullable=False, index=True)

    name = db.Column(db.String(120), nullable=False)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(64), nullable=True)
    production_area_id = db.Column(db.Integer, db.ForeignKey("production_areas.id"), nullable=True, index=True)

    base_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    margin_percentage = db.Column(db.Numeric(5, 2), nullable=False, default=30)
    final_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    total_cost = db.Column(db.Numeric(12, 4), nullable=False, default=0)
    profit = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    profit_percentage = db.Column(db.Numeric(7, 2), nullable=False, default=0)
    last_cost_calculation = db.Column(db.DateTime(timezone=True), nullable=True)

    is_available = db.Column(db.Boolean, nullable=False, default=True)
    preparation_time = db.Column(db.Integer, nullable=True)
    image_url = db.Column(db.String(512), nullable=True)
    tags = db.Column(db.JSON, nullable=False, default=list)
    allergens = db.Column(db.JSON, nullable=False, default=list)

    production_area = db.relationship("ProductionArea", backref=db.backref("products", lazy=True))
    lines = db.relationship(
        "ProductComponent",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="ProductComponent.position",
    )

    @property
    def sale_price(self):
        return self.final_price

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} price={self.final_price}>"

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "restaurant_id": self.restaurant_id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "production_area_id": self.production_area_id,
            "production_area_name": self.production_area.name if self.production_area else None,
            "base_price": as_float(self.base_price),
            "margin_percentage": as_float(self.margin_percentage),
            "final_price": as_float(self.final_price),
            "total_cost": as_float(self.total_cost),
            "profit": as_float(self.profit),
            "profit_percentage": as_float(self.profit_percentage),
            "last_cost_calculation": to_utc_z(self.last_cost_calculation),
            "is_available": self.is_available,
            "preparation_time": self.preparation_time,
            "image_url": self.image_url,
            "tags": list(self.tags or []),
            "allergens": list(self.allergens or []),
            "record_status": self.record_status,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_lines:
            data["recipe"] = [c.to_dict() for c in self.lines]
        return data


class ProductComponent(db.Model):
    """
    A product line with waste tracking.

    gross_quantity is what leaves the shelf and what cost and stock use;
    net_quantity is what reaches the plate.
    """
    __tablename__ = "product_components"
    __table_args__ = (
        db.CheckConstraint(
            "(ingredient_id IS NULL) <> (semifinished_id IS NULL)",
            name="ck_product_components_one_ref",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    ingredient_id = db.Column(db.Integer, db.ForeignKey("ingredients.id"), nullable=True, index=True)
    semifinished_id = db.Column(db.Integer, db.ForeignKey("semifinished.id"), nullable=True, index=True)
    gross_quantity = db.Column(db.Numeric(12, 3), nullable=False)
    net_quantity = db.Column(db.Numeric(12, 3), nullable=False)
    waste_percentage = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    position = db.Column(db.Integer, nullable=False, default=0)

    product = db.relationship("Product", back_populates="lines")
    ingredient = db.relationship("Ingredient")
    semifinished = db.relationship("Semifinished")

    @property
    def quantity(self):
        return self.gross_quantity

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "ingredient_id": self.ingredient_id,
            "semifinished_id": self.semifinished_id,
            "ingredient": _ingredient_ref(self.ingredient),
            "semifinished": _semifinished_ref(self.semifinished),
            "gross_quantity": as_float(self.gross_quantity),
            "net_quantity": as_float(self.net_quantity),
            "waste_percentage": as_float(self.waste_percentage),
        }
