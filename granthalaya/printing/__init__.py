from .labels import (
    LabelDefinition,
    assign_template_to_process,
    build_product_label_context,
    build_rack_label_context,
    get_template_for_process,
    register_label_definition,
    render_label_for_process,
    render_product_label,
    render_rack_label,
)
from .zebra import print_product_batch, print_product_labels, print_rack_labels

__all__ = [
    "LabelDefinition",
    "assign_template_to_process",
    "build_product_label_context",
    "build_rack_label_context",
    "get_template_for_process",
    "print_product_batch",
    "print_product_labels",
    "print_rack_labels",
    "register_label_definition",
    "render_label_for_process",
    "render_product_label",
    "render_rack_label",
]
