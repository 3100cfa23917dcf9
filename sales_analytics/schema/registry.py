"""
Canonical Schema Registry

Declarative table of the canonical entities. Each field lists the physical
names it is known under, in priority order, so that schema resolution is a
lookup rather than branching logic in query code.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Tuple


class Entity(str, Enum):
    """Canonical entities"""
    CATEGORY = "category"
    CUSTOMER = "customer"
    EMPLOYEE = "employee"
    PRODUCT = "product"
    SHIPPER = "shipper"
    ORDER = "order"
    ORDER_LINE = "order_line"


class FieldKind(str, Enum):
    """Semantic type of a canonical field"""
    KEY = "key"
    TEXT = "text"
    NUMBER = "number"
    TIMESTAMP = "timestamp"


@dataclass(frozen=True)
class CanonicalField:
    """
    A canonical field and the source names it may appear under.

    required: the source must expose one of the candidates
    nullable: null values are allowed after coercion
    default: value substituted for nulls
    """
    name: str
    kind: FieldKind
    candidates: Tuple[str, ...]
    required: bool = True
    nullable: bool = True
    default: Optional[float] = None


@dataclass(frozen=True)
class EntitySchema:
    """Canonical shape of one entity"""
    entity: Entity
    tables: Tuple[str, ...]
    fields: Tuple[CanonicalField, ...]
    key: Optional[str] = None
    # composite identity of entities without a single key column
    natural_key: Tuple[str, ...] = ()

    @property
    def unique_key(self) -> Tuple[str, ...]:
        """Columns that identify a row for de-duplication"""
        if self.key:
            return (self.key,)
        return self.natural_key

    def field(self, name: str) -> CanonicalField:
        for f in self.fields:
            if f.name == name:
                return f
        raise KeyError(f"{self.entity.value} has no field '{name}'")

    @property
    def field_names(self) -> Tuple[str, ...]:
        return tuple(f.name for f in self.fields)


def _key(name: str, *candidates: str, required: bool = True, nullable: bool = False) -> CanonicalField:
    return CanonicalField(name, FieldKind.KEY, candidates, required=required, nullable=nullable)


def _text(name: str, *candidates: str, required: bool = True) -> CanonicalField:
    return CanonicalField(name, FieldKind.TEXT, candidates, required=required)


REGISTRY: Dict[Entity, EntitySchema] = {
    Entity.CATEGORY: EntitySchema(
        entity=Entity.CATEGORY,
        tables=("categories",),
        key="category_id",
        fields=(
            _key("category_id", "category_id", "categoryid", "categoryID"),
            _text("category_name", "category_name", "categoryname", "categoryName"),
        ),
    ),
    Entity.CUSTOMER: EntitySchema(
        entity=Entity.CUSTOMER,
        tables=("customers",),
        key="customer_id",
        fields=(
            _key("customer_id", "customer_id", "customerid", "customerID"),
            _text("company_name", "company_name", "companyname", "companyName"),
            _text("country", "country", required=False),
            _text("region", "region", required=False),
        ),
    ),
    Entity.EMPLOYEE: EntitySchema(
        entity=Entity.EMPLOYEE,
        tables=("employees",),
        key="employee_id",
        fields=(
            _key("employee_id", "employee_id", "employeeid", "employeeID"),
            _text("employee_name", "employee_name", "employeename", "employeeName"),
            _text("title", "title", required=False),
        ),
    ),
    Entity.PRODUCT: EntitySchema(
        entity=Entity.PRODUCT,
        tables=("products",),
        key="product_id",
        fields=(
            _key("product_id", "product_id", "productid", "productID"),
            _text("product_name", "product_name", "productname", "productName"),
            # orphans (unknown category) stay aggregable
            _key("category_id", "category_id", "categoryid", "categoryID", nullable=True),
        ),
    ),
    Entity.SHIPPER: EntitySchema(
        entity=Entity.SHIPPER,
        tables=("shippers",),
        key="shipper_id",
        fields=(
            _key("shipper_id", "shipper_id", "shipperid", "shipperID"),
            _text("company_name", "company_name", "companyname", "companyName"),
        ),
    ),
    Entity.ORDER: EntitySchema(
        entity=Entity.ORDER,
        tables=("orders",),
        key="order_id",
        fields=(
            _key("order_id", "order_id", "orderid", "orderID"),
            _key("customer_id", "customer_id", "customerid", "customerID"),
            _key("employee_id", "employee_id", "employeeid", "employeeID", required=False, nullable=True),
            CanonicalField("order_date", FieldKind.TIMESTAMP, ("order_date", "orderdate", "orderDate"), required=False),
            CanonicalField(
                "required_date",
                FieldKind.TIMESTAMP,
                ("required_date", "requiredate", "requireddate", "requiredDate"),
            ),
            CanonicalField("shipped_date", FieldKind.TIMESTAMP, ("shipped_date", "shippeddate", "shippedDate"), required=False),
            _key("ship_via", "ship_via", "shipvia", "shipVia", "shipperid", "shipperID", required=False, nullable=True),
            CanonicalField("freight", FieldKind.NUMBER, ("freight",), required=False, default=0.0),
        ),
    ),
    Entity.ORDER_LINE: EntitySchema(
        entity=Entity.ORDER_LINE,
        tables=("order_details", "order_items"),
        natural_key=("order_id", "product_id"),
        fields=(
            _key("order_id", "order_id", "orderid", "orderID"),
            _key("product_id", "product_id", "productid", "productID"),
            CanonicalField("unit_price", FieldKind.NUMBER, ("unit_price", "unitprice", "unitPrice")),
            CanonicalField("quantity", FieldKind.NUMBER, ("quantity",)),
            CanonicalField("discount", FieldKind.NUMBER, ("discount",), required=False, default=0.0),
        ),
    ),
}
