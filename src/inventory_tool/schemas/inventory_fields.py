"""Target inventory field schema for CSV import.

The set of importable fields is closed: every member of ``InventoryField`` has
exactly one ``FieldSpec`` in ``FIELD_SCHEMA``, checked at import time.
"""
import enum
from dataclasses import dataclass
from typing import Dict, Optional, Tuple


class DataType(str, enum.Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"
    UNKNOWN = "unknown"


class FieldType(str, enum.Enum):
    STRING = "string"
    DECIMAL = "decimal"
    INTEGER = "integer"
    ENUM = "enum"
    LIST = "list"
    REFERENCE = "reference"


class InventoryField(str, enum.Enum):
    SKU = "sku"
    NAME = "name"
    DESCRIPTION = "description"
    CATEGORY = "category"
    LOCATION = "location"
    PRICE = "price"
    COST = "cost"
    QUANTITY = "quantity"
    MIN_STOCK = "min_stock"
    MAX_STOCK = "max_stock"
    STATUS = "status"
    BARCODE = "barcode"
    TAGS = "tags"
    SUPPLIER = "supplier"
    NOTES = "notes"


@dataclass(frozen=True)
class FieldSpec:
    key: InventoryField
    field_type: FieldType
    required: bool
    synonyms: Tuple[str, ...]
    max_length: Optional[int] = None
    hint: str = ""

    @property
    def profile_type(self) -> DataType:
        """Column data type this field expects to receive"""
        if self.field_type in (FieldType.DECIMAL, FieldType.INTEGER):
            return DataType.NUMBER
        return DataType.STRING

    @property
    def is_numeric(self) -> bool:
        return self.field_type in (FieldType.DECIMAL, FieldType.INTEGER)


FIELD_SCHEMA: Tuple[FieldSpec, ...] = (
    FieldSpec(
        key=InventoryField.SKU,
        field_type=FieldType.STRING,
        required=True,
        synonyms=(
            "sku", "code", "product_code", "item_code", "product_id", "item_id",
            "reference", "ref", "codigo", "código", "articulo", "artículo", "cod",
        ),
        max_length=50,
        hint="Use a unique code of letters, digits, dashes and underscores",
    ),
    FieldSpec(
        key=InventoryField.NAME,
        field_type=FieldType.STRING,
        required=True,
        synonyms=(
            "name", "product", "product_name", "item", "item_name", "title",
            "nombre", "producto", "titulo", "título",
        ),
        max_length=200,
        hint="Provide a descriptive product name",
    ),
    FieldSpec(
        key=InventoryField.DESCRIPTION,
        field_type=FieldType.STRING,
        required=False,
        synonyms=(
            "description", "details", "long_description", "descripcion",
            "descripción", "detalles",
        ),
        hint="Add a detailed description",
    ),
    FieldSpec(
        key=InventoryField.CATEGORY,
        field_type=FieldType.REFERENCE,
        required=False,
        synonyms=(
            "category", "type", "group", "class", "classification", "categoria",
            "categoría", "tipo", "grupo", "clase", "clasificacion",
        ),
        max_length=100,
        hint="Use the name of an existing category",
    ),
    FieldSpec(
        key=InventoryField.LOCATION,
        field_type=FieldType.REFERENCE,
        required=False,
        synonyms=(
            "location", "place", "warehouse", "storage", "shelf", "ubicacion",
            "ubicación", "lugar", "almacen", "almacén", "estante",
        ),
        max_length=100,
        hint="Use the name of an existing location",
    ),
    FieldSpec(
        key=InventoryField.PRICE,
        field_type=FieldType.DECIMAL,
        required=False,
        synonyms=(
            "price", "unit_price", "selling_price", "retail_price", "list_price",
            "precio", "precio_unitario", "precio_venta", "precio_lista",
        ),
        hint="Use a numeric format (e.g. 10.50)",
    ),
    FieldSpec(
        key=InventoryField.COST,
        field_type=FieldType.DECIMAL,
        required=False,
        synonyms=(
            "cost", "unit_cost", "purchase_price", "wholesale_price", "buy_price",
            "costo", "costo_unitario", "precio_compra",
        ),
        hint="Use a numeric format (e.g. 5.25)",
    ),
    FieldSpec(
        key=InventoryField.QUANTITY,
        field_type=FieldType.INTEGER,
        required=False,
        synonyms=(
            "quantity", "qty", "stock", "on_hand", "inventory", "amount",
            "cantidad", "cant", "existencias", "inventario",
        ),
        hint="Use a whole number (e.g. 10)",
    ),
    FieldSpec(
        key=InventoryField.MIN_STOCK,
        field_type=FieldType.INTEGER,
        required=False,
        synonyms=(
            "min_stock", "minimum_stock", "min_quantity", "reorder_point",
            "min_level", "stock_minimo", "stock_mínimo", "punto_reorden",
        ),
        hint="Use a whole number (e.g. 5)",
    ),
    FieldSpec(
        key=InventoryField.MAX_STOCK,
        field_type=FieldType.INTEGER,
        required=False,
        synonyms=(
            "max_stock", "maximum_stock", "max_quantity", "max_level", "capacity",
            "stock_maximo", "stock_máximo", "capacidad",
        ),
        hint="Use a whole number (e.g. 100)",
    ),
    FieldSpec(
        key=InventoryField.STATUS,
        field_type=FieldType.ENUM,
        required=False,
        synonyms=("status", "state", "condition", "estado", "condicion", "condición"),
        hint="Use: active, inactive or discontinued",
    ),
    FieldSpec(
        key=InventoryField.BARCODE,
        field_type=FieldType.STRING,
        required=False,
        synonyms=("barcode", "ean", "upc", "gtin", "isbn", "codigo_barras", "código_barras"),
        hint="Use digits only",
    ),
    FieldSpec(
        key=InventoryField.TAGS,
        field_type=FieldType.LIST,
        required=False,
        synonyms=("tags", "labels", "keywords", "etiquetas", "palabras_clave"),
        hint="Separate multiple tags with commas",
    ),
    FieldSpec(
        key=InventoryField.SUPPLIER,
        field_type=FieldType.STRING,
        required=False,
        synonyms=(
            "supplier", "vendor", "manufacturer", "brand", "proveedor",
            "fabricante", "marca",
        ),
        max_length=255,
        hint="Provide the supplier name",
    ),
    FieldSpec(
        key=InventoryField.NOTES,
        field_type=FieldType.STRING,
        required=False,
        synonyms=("notes", "comments", "remarks", "notas", "comentarios", "observaciones"),
        hint="Add additional notes",
    ),
)

FIELDS_BY_KEY: Dict[InventoryField, FieldSpec] = {spec.key: spec for spec in FIELD_SCHEMA}

if set(FIELDS_BY_KEY) != set(InventoryField) or len(FIELDS_BY_KEY) != len(FIELD_SCHEMA):
    raise RuntimeError("FIELD_SCHEMA must define every InventoryField exactly once")

REQUIRED_FIELDS: Tuple[InventoryField, ...] = tuple(spec.key for spec in FIELD_SCHEMA if spec.required)

UNMAPPED_TARGET = InventoryField.NOTES


def get_field_spec(field: InventoryField) -> FieldSpec:
    return FIELDS_BY_KEY[field]
