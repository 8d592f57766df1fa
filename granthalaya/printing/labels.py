"""Label template registry and ZPL rendering for product and rack stickers."""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from granthalaya.qr_payload import format_product_qr, format_rack_qr

LABEL_WIDTH = 406  # dots for 2" width at 203 DPI
LABEL_HEIGHT = 203  # dots for 1" height at 203 DPI

PRODUCT_LABEL_PROCESS = "ProductLabel"
RACK_LABEL_PROCESS = "RackLabel"

_PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*([^}]+)\s*\}\}")
_QR_ERROR_CORRECTION = {"L", "M", "Q", "H"}


@dataclass(frozen=True)
class LabelDefinition:
    """In-memory representation of a printable label template."""

    name: str
    layout: Mapping[str, Any]
    fields: Mapping[str, str]
    description: str | None = None
    triggers: tuple[str, ...] = ()

    def render(self, context: Mapping[str, Any]) -> str:
        values = _resolve_fields(self.fields, context)
        return _render_layout(self.layout, values)


LABEL_DEFINITIONS: dict[str, LabelDefinition] = {}
PROCESS_ASSIGNMENTS: dict[str, str] = {}


def register_label_definition(template: LabelDefinition, *, override: bool = True) -> None:
    """Register a ``LabelDefinition`` for runtime use."""

    if not override and template.name in LABEL_DEFINITIONS:
        raise ValueError(f"Label '{template.name}' is already registered.")
    LABEL_DEFINITIONS[template.name] = template
    for trigger in template.triggers:
        PROCESS_ASSIGNMENTS.setdefault(trigger, template.name)


def assign_template_to_process(process: str, template_name: str) -> None:
    """Explicitly map a process trigger to a label template name."""

    PROCESS_ASSIGNMENTS[process] = template_name


def get_template_for_process(process: str) -> LabelDefinition | None:
    template_name = PROCESS_ASSIGNMENTS.get(process)
    if not template_name:
        return None
    return LABEL_DEFINITIONS.get(template_name)


def render_label_for_process(process: str, context: Mapping[str, Any]) -> str:
    template = get_template_for_process(process)
    if template is None:
        raise KeyError(f"No label template assigned to process '{process}'.")
    return template.render(context)


def _format_price(value: Any) -> str:
    if value is None or value == "":
        return ""
    try:
        amount = Decimal(str(value))
    except ArithmeticError:
        return str(value)
    if amount == amount.to_integral_value():
        return f"Rs. {amount.quantize(Decimal(1))}"
    return f"Rs. {amount.quantize(Decimal('0.01'))}"


def _value(source: Any, key: str) -> Any:
    if isinstance(source, Mapping):
        return source.get(key)
    return getattr(source, key, None)


def build_product_label_context(product: Any) -> dict[str, Any]:
    """Build the label context for a ``Product`` row or an equivalent mapping."""

    code = _value(product, "product_code") or ""
    variant = _value(product, "variant_info") or ""
    return {
        "Product": {
            "Code": code,
            "Name": _value(product, "name") or "Unknown Product",
            "Variant": f"[{variant}]" if variant else "",
            "Price": _format_price(_value(product, "price")),
            "QRPayload": format_product_qr(code) if code else "",
        }
    }


def build_rack_label_context(rack: Any) -> dict[str, Any]:
    rack_id = _value(rack, "rack_id") or ""
    section = _value(rack, "section") or ""
    shelf = _value(rack, "shelf") or ""
    return {
        "Rack": {
            "ID": rack_id,
            "Name": _value(rack, "name") or "",
            "Location": " / ".join(part for part in (section, shelf) if part),
            "QRPayload": format_rack_qr(rack_id) if rack_id else "",
        }
    }


def render_product_label(product: Any) -> str:
    return render_label_for_process(PRODUCT_LABEL_PROCESS, build_product_label_context(product))


def render_rack_label(rack: Any) -> str:
    return render_label_for_process(RACK_LABEL_PROCESS, build_rack_label_context(rack))


def _resolve_fields(fields: Mapping[str, str], context: Mapping[str, Any]) -> dict[str, str]:
    resolved: dict[str, str] = {}
    for key, expression in fields.items():
        value = _evaluate_expression(expression, context)
        resolved[key] = "" if value is None else str(value)
    return resolved


def _evaluate_expression(expression: Any, context: Mapping[str, Any]) -> Any:
    if expression is None:
        return ""
    if isinstance(expression, str):
        match = _PLACEHOLDER_PATTERN.fullmatch(expression.strip())
        if match:
            path = [segment for segment in match.group(1).split(".") if segment]
            return _traverse_path(context, path)
        return expression
    return expression


def _traverse_path(value: Any, segments: list[str]) -> Any:
    current = value
    for segment in segments:
        if current is None:
            return ""
        if isinstance(current, Mapping):
            current = current.get(segment)
        else:
            current = getattr(current, segment, None)
    return "" if current is None else current


def _render_layout(layout: Mapping[str, Any], field_values: Mapping[str, str]) -> str:
    width = int(layout.get("width") or LABEL_WIDTH)
    height = int(layout.get("height") or LABEL_HEIGHT)
    commands = ["^XA", "^CI28", f"^PW{width}", f"^LL{height}"]

    for element in layout.get("elements", []):
        commands.extend(_render_element(element, field_values))

    commands.append("^XZ")
    return "\n".join(commands)


def _render_element(element: Mapping[str, Any], field_values: Mapping[str, str]) -> list[str]:
    element_type = str(element.get("type", "field")).lower()
    x = int(element.get("x", 0))
    y = int(element.get("y", 0))
    commands: list[str] = []

    if element_type == "text":
        text = str(element.get("text", ""))
        if element.get("uppercase"):
            text = text.upper()
        text = _sanitize_zpl_text(text)
        commands.append(f"^FO{x},{y}{_font_command(element)}^FD{text}^FS")
        return commands

    if element_type == "field":
        field_key = _field_key(element)
        value = field_values.get(field_key, "")
        if not value and element.get("skipEmpty"):
            return commands
        text = f"{element.get('prefix', '')}{value}{element.get('suffix', '')}"
        if element.get("uppercase"):
            text = text.upper()
        text = _sanitize_zpl_text(text)
        commands.append(f"^FO{x},{y}{_font_command(element)}{_block_command(element)}^FD{text}^FS")
        return commands

    if element_type == "barcode":
        field_key = _field_key(element)
        value = _sanitize_zpl_text(field_values.get(field_key, ""))
        height = int(element.get("height") or element.get("barHeight") or 120)
        orientation = str(element.get("orientation", "N")).upper()[:1] or "N"
        print_text = "Y" if element.get("printValue", True) else "N"
        check_digit = "Y" if element.get("checkDigit", False) else "N"
        commands.append(
            f"^FO{x},{y}^BC{orientation},{height},{print_text},N,{check_digit}^FD{value}^FS"
        )
        return commands

    if element_type == "qrcode":
        field_key = _field_key(element)
        value = _sanitize_zpl_text(field_values.get(field_key, ""))
        if not value:
            return commands
        magnification = int(element.get("magnification") or 4)
        level = str(element.get("errorCorrection", "M")).upper()[:1]
        if level not in _QR_ERROR_CORRECTION:
            level = "M"
        commands.append(f"^FO{x},{y}^BQN,2,{magnification}^FD{level}A,{value}^FS")
        return commands

    if element_type == "box":
        width = int(element.get("width", 0))
        height = int(element.get("height", 0))
        thickness = int(element.get("thickness", 2))
        commands.append(f"^FO{x},{y}^GB{width},{height},{thickness},B,0^FS")
        return commands

    return commands


def _font_command(element: Mapping[str, Any]) -> str:
    name = element.get("fontName") or "0"
    orientation = str(element.get("orientation") or "N").upper()[:1] or "N"
    height = int(element.get("fontSize") or element.get("height") or 30)
    width = element.get("fontWidth")
    if width is not None:
        return f"^A{name},{orientation},{height},{int(width)}"
    return f"^A{name},{orientation},{height}"


def _block_command(element: Mapping[str, Any]) -> str:
    block_width = element.get("blockWidth")
    if not block_width:
        return ""
    max_lines = int(element.get("maxLines") or 1)
    return f"^FB{int(block_width)},{max_lines},0,L,0"


def _field_key(element: Mapping[str, Any]) -> str | None:
    if isinstance(element.get("fieldKey"), str):
        return element["fieldKey"]
    if isinstance(element.get("field"), str):
        return element["field"]
    return None


def _sanitize_zpl_text(value: Any) -> str:
    text = "" if value is None else str(value)
    return text.replace("^", r"\^").replace("~", r"\~")


PRODUCT_LABEL_DEFINITION = LabelDefinition(
    name="ProductLabelTemplate",
    description="2x1 inch product sticker with QR code, name, price and product code.",
    layout={
        "width": LABEL_WIDTH,
        "height": LABEL_HEIGHT,
        "elements": [
            {
                "id": "qr",
                "type": "qrcode",
                "fieldKey": "catalog.product.qr",
                "x": 10,
                "y": 10,
                "magnification": 3,
                "errorCorrection": "M",
            },
            {
                "id": "name",
                "type": "field",
                "fieldKey": "catalog.product.name",
                "x": 180,
                "y": 18,
                "fontSize": 22,
                "blockWidth": 216,
                "maxLines": 2,
            },
            {
                "id": "variant",
                "type": "field",
                "fieldKey": "catalog.product.variant",
                "x": 180,
                "y": 70,
                "fontSize": 18,
                "skipEmpty": True,
            },
            {
                "id": "price",
                "type": "field",
                "fieldKey": "catalog.product.price",
                "x": 180,
                "y": 100,
                "fontSize": 32,
            },
            {
                "id": "code",
                "type": "field",
                "fieldKey": "catalog.product.code",
                "x": 180,
                "y": 145,
                "fontSize": 14,
            },
            {
                "id": "branding",
                "type": "text",
                "text": "Gayatri Granthalaya",
                "x": 180,
                "y": 170,
                "fontSize": 12,
                "uppercase": True,
            },
        ],
    },
    fields={
        "catalog.product.qr": "{{Product.QRPayload}}",
        "catalog.product.name": "{{Product.Name}}",
        "catalog.product.variant": "{{Product.Variant}}",
        "catalog.product.price": "{{Product.Price}}",
        "catalog.product.code": "{{Product.Code}}",
    },
    triggers=(PRODUCT_LABEL_PROCESS,),
)


RACK_LABEL_DEFINITION = LabelDefinition(
    name="RackLabelTemplate",
    description="2x1 inch rack identity sticker.",
    layout={
        "width": LABEL_WIDTH,
        "height": LABEL_HEIGHT,
        "elements": [
            {
                "id": "qr",
                "type": "qrcode",
                "fieldKey": "warehouse.rack.qr",
                "x": 10,
                "y": 10,
                "magnification": 3,
                "errorCorrection": "H",
            },
            {
                "id": "rack-id",
                "type": "field",
                "fieldKey": "warehouse.rack.id",
                "x": 180,
                "y": 25,
                "fontSize": 40,
            },
            {
                "id": "name",
                "type": "field",
                "fieldKey": "warehouse.rack.name",
                "x": 180,
                "y": 80,
                "fontSize": 24,
            },
            {
                "id": "location",
                "type": "field",
                "fieldKey": "warehouse.rack.location",
                "x": 180,
                "y": 120,
                "fontSize": 18,
                "skipEmpty": True,
            },
            {
                "id": "branding",
                "type": "text",
                "text": "Warehouse identity system",
                "x": 180,
                "y": 170,
                "fontSize": 12,
                "uppercase": True,
            },
        ],
    },
    fields={
        "warehouse.rack.qr": "{{Rack.QRPayload}}",
        "warehouse.rack.id": "{{Rack.ID}}",
        "warehouse.rack.name": "{{Rack.Name}}",
        "warehouse.rack.location": "{{Rack.Location}}",
    },
    triggers=(RACK_LABEL_PROCESS,),
)


register_label_definition(PRODUCT_LABEL_DEFINITION)
register_label_definition(RACK_LABEL_DEFINITION)
assign_template_to_process(PRODUCT_LABEL_PROCESS, PRODUCT_LABEL_DEFINITION.name)
assign_template_to_process(RACK_LABEL_PROCESS, RACK_LABEL_DEFINITION.name)


__all__ = [
    "LabelDefinition",
    "assign_template_to_process",
    "build_product_label_context",
    "build_rack_label_context",
    "get_template_for_process",
    "register_label_definition",
    "render_label_for_process",
    "render_product_label",
    "render_rack_label",
]
