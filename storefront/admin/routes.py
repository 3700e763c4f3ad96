from . import bp
from ..extensions import db
from ..model import Order, Product, User
from ..utils.api import ok
from ..utils.decorators import role_required
from ..utils.money import to_float

RECENT_ORDERS = 5
DEFAULT_CUSTOMER = "Khách hàng"


def _recent_order(o: Order) -> dict:
    return {
        "id": o.id,
        "customer": (o.user.name if o.user else None) or DEFAULT_CUSTOMER,
        "customer_email": o.user.email if o.user else None,
        "total": to_float(o.total),
        "status": o.status,
        "created_at": o.created_at.isoformat() if o.created_at else None,
    }


@bp.get("/dashboard")
@role_required("admin", message="Only admins can view the dashboard")
def dashboard():
    recent = (
        Order.query.order_by(Order.created_at.desc(), Order.id.desc())
        .limit(RECENT_ORDERS)
        .all()
    )
    return ok("dashboard", {
        "total_users": db.session.query(User.id).count(),
        "total_products": db.session.query(Product.id).count(),
        "total_orders": db.session.query(Order.id).count(),
        "recent_orders": [_recent_order(o) for o in recent],
    })
