def _iso(value):
    return value.isoformat() if value else None


def _money(value):
    return float(value) if value is not None else None


def serialize_user(u, brief=False):
    if u is None:
        return None
    if brief:
        return {"id": u.id, "name": u.name, "email": u.email}
    return {
        "id": u.id,
        "name": u.name,
        "email": u.email,
        "phone": u.phone_number,
        "provider": u.provider,
        "roles": u.role_names,
        "role": "admin" if u.is_admin else "user",
        "createdAt": _iso(u.created_at),
    }


def serialize_notification(n):
    return {
        "seq": n.seq,
        "message": n.message,
        "read": n.read,
        "createdAt": _iso(n.created_at),
    }


def serialize_request(r, include_owner=False):
    out = {
        "id": r.id,
        "userId": r.user_id,
        "packageId": r.package_id,
        "packageTitle": r.package_title,
        "packagePrice": _money(r.package_price),
        "guests": r.guests,
        "checkInDate": _iso(r.check_in_date),
        "checkOutDate": _iso(r.check_out_date),
        "note": r.note,
        "status": r.status,
        "totalAmount": _money(r.total_amount),
        "adminResponse": None,
        "payment": None,
        "notifications": [serialize_notification(n) for n in r.notifications],
        "createdAt": _iso(r.created_at),
        "updatedAt": _iso(r.updated_at),
    }
    if r.responded_at:
        out["adminResponse"] = {
            "message": r.admin_message,
            "respondedBy": serialize_user(r.responder, brief=True),
            "respondedAt": _iso(r.responded_at),
        }
    if r.paid_at:
        out["payment"] = {
            "amount": _money(r.payment_amount),
            "currency": r.payment_currency,
            "paymentId": r.payment_id,
            "paymentMethod": r.payment_method,
            "paidAt": _iso(r.paid_at),
        }
    if include_owner:
        out["user"] = serialize_user(r.owner, brief=True)
    return out
