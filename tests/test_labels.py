import os
import sys
from decimal import Decimal

sys.path.append(os.path.join(os.path.dirname(__file__), ".."))

from granthalaya.printing import labels


def test_product_label_generates_expected_zpl():
    product = {
        "product_code": "GG-BK-BHAGAVAD-GITA-00101",
        "name": "Bhagavad Gita",
        "variant_info": "Hindi",
        "price": Decimal("250.00"),
    }

    zpl = labels.render_product_label(product)

    assert zpl.startswith("^XA")
    assert zpl.endswith("^XZ")
    assert "^PW406" in zpl
    assert "^LL203" in zpl
    assert '^FO10,10^BQN,2,3^FDMA,{"productCode":"GG-BK-BHAGAVAD-GITA-00101"}^FS' in zpl
    assert "^FDBhagavad Gita^FS" in zpl
    assert "^FD[Hindi]^FS" in zpl
    assert "^FDRs. 250^FS" in zpl
    assert "GAYATRI GRANTHALAYA" in zpl


def test_product_label_formats_fractional_prices_and_skips_empty_variant():
    context = labels.build_product_label_context(
        {"product_code": "GG-SM-KUMKUM-00102", "name": "Kumkum", "price": "35.5"}
    )
    assert context["Product"]["Price"] == "Rs. 35.50"

    zpl = labels.render_label_for_process(labels.PRODUCT_LABEL_PROCESS, context)
    assert "^FD[" not in zpl


def test_rack_label_uses_high_error_correction():
    rack = {"rack_id": "RACK-A3", "name": "Scriptures", "section": "North", "shelf": "2"}

    zpl = labels.render_rack_label(rack)

    assert '^BQN,2,3^FDHA,{"rackId":"RACK-A3"}^FS' in zpl
    assert "^FDRACK-A3^FS" in zpl
    assert "^FDNorth / 2^FS" in zpl
    assert "WAREHOUSE IDENTITY SYSTEM" in zpl


def test_caret_and_tilde_are_escaped():
    zpl = labels.render_product_label(
        {"product_code": "GG-OT-CARET-00101", "name": "Caret^Tilde~", "price": 1}
    )
    assert r"Caret\^Tilde\~" in zpl


def test_label_without_code_omits_qr():
    zpl = labels.render_product_label({"name": "Legacy Diya", "price": 10})
    assert "^BQN" not in zpl


def test_custom_template_can_be_registered_and_assigned():
    template = labels.LabelDefinition(
        name="TestTemplate",
        layout={
            "width": 200,
            "height": 120,
            "elements": [
                {"type": "qrcode", "fieldKey": "demo.qr", "x": 5, "y": 5, "errorCorrection": "Z"},
                {"type": "barcode", "fieldKey": "demo.value", "x": 10, "y": 60, "height": 40},
                {"type": "box", "x": 0, "y": 0, "width": 200, "height": 120, "thickness": 3},
            ],
        },
        fields={"demo.value": "{{Value}}", "demo.qr": "{{QR}}"},
    )
    labels.register_label_definition(template)
    labels.assign_template_to_process("DemoEvent", template.name)
    try:
        rendered = labels.render_label_for_process("DemoEvent", {"Value": "ORD-55", "QR": "X"})
    finally:
        labels.LABEL_DEFINITIONS.pop(template.name, None)
        labels.PROCESS_ASSIGNMENTS.pop("DemoEvent", None)

    assert "^PW200" in rendered
    # Unknown error correction levels fall back to M.
    assert "^FO5,5^BQN,2,4^FDMA,X^FS" in rendered
    assert "^FO10,60^BCN,40,Y,N,N^FDORD-55^FS" in rendered
    assert "^FO0,0^GB200,120,3,B,0^FS" in rendered


def test_unassigned_process_raises_key_error():
    try:
        labels.render_label_for_process("NoSuchProcess", {})
    except KeyError as exc:
        assert "NoSuchProcess" in str(exc)
    else:
        raise AssertionError("KeyError not raised")


def test_register_without_override_rejects_duplicates():
    try:
        labels.register_label_definition(labels.PRODUCT_LABEL_DEFINITION, override=False)
    except ValueError:
        pass
    else:
        raise AssertionError("Duplicate registration accepted")
