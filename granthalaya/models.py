from datetime import datetime

from sqlalchemy.orm import validates

from granthalaya.extensions import db
from granthalaya.product_codes import ProductCodeError


class Product(db.Model):
    __tablename__ = "product"

    id = db.Column(db.Integer, primary_key=True)
    # GG code; assigned once at creation (or by the backfill) and never changed
    product_code = db.Column(db.String(64), unique=True, nullable=True)
    type = db.Column(db.String(2), nullable=True)
    name = db.Column(db.String(255), nullable=False)
    price = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    stock_quantity = db.Column(db.Integer, nullable=False, default=0)
    category = db.Column(db.String(120), nullable=True)
    description = db.Column(db.Text, nullable=True)
    variant_info = db.Column(db.String(120), nullable=True)
    rack_id = db.Column(db.String(64), db.ForeignKey("rack.rack_id"), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=True, default=datetime.utcnow)
    updated_at = db.Column(
        db.DateTime, nullable=True, default=datetime.utcnow, onupdate=datetime.utcnow
    )
    created_by = db.Column(db.String(120), nullable=True)

    rack = db.relationship("Rack", back_populates="products")

    @validates("product_code")
    def _validate_product_code(self, key, value):
        current = self.product_code
        if current and value != current:
            raise ProductCodeError(
                f"Product code {current} is immutable and cannot be changed."
            )
        return value


class Rack(db.Model):
    __tablename__ = "rack"

    id = db.Column(db.Integer, primary_key=True)
    rack_id = db.Column(db.String(64), unique=True, nullable=False)
    name = db.Column(db.String(120), nullable=False)
    section = db.Column(db.String(120), nullable=True)
    shelf = db.Column(db.String(120), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(
        db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    products = db.relationship(
        "Product", back_populates="rack", order_by="Product.product_code"
    )

    @property
    def product_codes(self) -> list[str]:
        return [product.product_code for product in self.products if product.product_code]


class DeliveryStatus:
    PENDING = "pending"
    PACKED = "packed"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"

    ALL_STATUSES = [PENDING, PACKED, SHIPPED, DELIVERED, CANCELLED]


class CustomerOrder(db.Model):
    __tablename__ = "customer_order"

    id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.String(64), unique=True, nullable=False)
    customer_name = db.Column(db.String(255), nullable=False, default="")
    status = db.Column(db.String(32), nullable=False, default=DeliveryStatus.PENDING)
    delivery_status = db.Column(
        db.String(32), nullable=False, default=DeliveryStatus.PENDING
    )
    packed_by = db.Column(db.String(120), nullable=True)
    packed_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(
        db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    items = db.relationship(
        "CustomerOrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="CustomerOrderItem.id",
    )

    @property
    def total_units(self) -> int:
        return sum(item.quantity or 0 for item in self.items)

    @property
    def verified_units(self) -> int:
        return sum(item.verified_quantity or 0 for item in self.items)


class CustomerOrderItem(db.Model):
    __tablename__ = "customer_order_item"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(
        db.Integer, db.ForeignKey("customer_order.id", ondelete="CASCADE"), nullable=False
    )
    product_id = db.Column(db.Integer, db.ForeignKey("product.id"), nullable=True)
    # Snapshots taken when the order was placed
    product_code = db.Column(db.String(64), nullable=True)
    title = db.Column(db.String(255), nullable=False, default="")
    unit_price = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    quantity = db.Column(db.Integer, nullable=False, default=1)
    rack_id = db.Column(db.String(64), nullable=True)
    verified_quantity = db.Column(db.Integer, nullable=False, default=0)

    order = db.relationship("CustomerOrder", back_populates="items")
    product = db.relationship("Product")


class SystemMetadata(db.Model):
    __tablename__ = "system_metadata"

    key = db.Column(db.String(120), primary_key=True)
    completed = db.Column(db.Boolean, nullable=False, default=False)
    processed_count = db.Column(db.Integer, nullable=False, default=0)
    completed_at = db.Column(db.DateTime, nullable=True)


class AdminLog(db.Model):
    __tablename__ = "admin_log"

    ACTION_CREATE = "CREATE"
    ACTION_UPDATE = "UPDATE"
    ACTION_DELETE = "DELETE"
    ACTIONS = (ACTION_CREATE, ACTION_UPDATE, ACTION_DELETE)

    id = db.Column(db.Integer, primary_key=True)
    admin_user = db.Column(db.String(120), nullable=True)
    action = db.Column(db.String(16), nullable=False)
    collection = db.Column(db.String(120), nullable=False)
    document_id = db.Column(db.String(120), nullable=False)
    details = db.Column(db.String(512), nullable=True)
    previous_data = db.Column(db.JSON, nullable=True)
    new_data = db.Column(db.JSON, nullable=True)
    platform = db.Column(db.String(32), nullable=False, default="api")
    timestamp = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
