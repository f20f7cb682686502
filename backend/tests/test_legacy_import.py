"""
Legacy JSON store import tests.

Covers both layouts of the legacy file (numeric branch ids with per-branch
settings, and named branches with a global settings block and catalogs),
plus the all-or-nothing guarantee.
"""

import copy

import pytest

from printshop.errors import StateConflictError, ValidationError
from printshop.models import BlockEvent, Branch, CatalogEntry, Order, Product, User, VoucherCode
from printshop.services import auth_service, branch_service, legacy_import_service, product_service


NUMERIC_SNAPSHOT = {
    "branches": [{"id": 1, "name": "Downtown"}, {"id": 2, "name": "Campus"}],
    "branchSettings": {
        "1": {
            "pagePrice": 12,
            "newTagDays": 5,
            "latestN": 10,
            "extras": [{"key": "extra2", "label": "Binding", "amount": 60}],
        },
    },
    "faculties": [
        {"id": 1, "branchId": 1, "name": "Medicine"},
        {"id": 2, "branchId": 2, "name": "Law"},
    ],
    "departments": [{"id": 1, "facultyId": 1, "name": "General"}],
    "users": [
        {"id": 1, "username": "boss", "password": "secret123", "role": "supervisor"},
        {"id": 2, "username": "clerk", "password": "secret123", "role": "admin", "branchId": 1},
        {
            "id": 5,
            "username": "amina",
            "password": "secret123",
            "role": "user",
            "branchId": 1,
            "facultyId": 1,
            "departmentId": 1,
            "creditDzd": 700,
            "wrongRedeemAttempts": 1,
        },
        {
            "id": 6,
            "username": "karim",
            "password": "secret123",
            "role": "user",
            "branchId": 2,
            "blocked": True,
            "wrongRedeemAttempts": 3,
        },
    ],
    "codes": [
        {
            "id": 10,
            "code": "abcd-efgh-jkmn",
            "amount": 500,
            "status": "SOLD",
            "visibleToAdminUserId": 2,
            "soldByAdminUserId": 2,
            "createdAt": 1700000000000,
            "soldAt": "2023-11-14T22:13:20.000Z",
        },
        {"id": 11, "code": "PQRS-TUVW-XYZ2", "amount": 1000, "status": "FRESH", "createdAt": 1700000000000},
    ],
    "products": [
        {
            "id": 3,
            "branchId": 1,
            "title": "Cardiology",
            "pages": 40,
            "priceMode": "auto_plus_extra",
            "extraKey": "extra2",
            "discountType": "fixed",
            "discountValue": 20,
            "facultyId": 1,
            "createdAt": 1700000000000,
        },
        {"id": 4, "branchId": 1, "title": "Draft", "pages": 2, "visible": False},
    ],
    "blockEvents": [{"id": 1, "userId": 6, "at": 1700000000000}],
}

NAMED_SNAPSHOT = {
    "branches": ["Centre", "Nord"],
    "settings": {
        "pricePerPage": 15,
        "newBadgeDays": 2,
        "recentProductsDefaultLimit": 8,
        "extras": {"extra1": 40},
    },
    "catalogs": {
        "faculties": [{"id": 1, "branch": "Centre", "name": "Medicine"}],
        "tracks": [{"id": 1, "facultyId": 1, "name": "General"}],
        "years": [{"id": 1, "trackId": 1, "name": "Year 1"}],
    },
    "users": [
        {"id": 1, "username": "boss", "password": "secret123", "role": "supervisor"},
        {"id": 2, "username": "clerk", "password": "secret123", "role": "admin", "branch": "Centre"},
        {
            "id": 3,
            "username": "lina",
            "password": "secret123",
            "role": "user",
            "branch": "Centre",
            "profile": {"facultyId": 1, "trackId": 1, "yearId": 1},
            "creditDzd": 300,
        },
    ],
    "codes": [
        {
            "id": 1,
            "code": "AAAA-BBBB-CCCC",
            "amount": 500,
            "sold": True,
            "redeemed": True,
            "assignedAdminId": 2,
            "soldByAdminId": 2,
            "redeemedByUserId": 3,
            "branch": "Centre",
        },
        {"id": 2, "code": "DDDD-EEEE-FFFF", "amount": 1000, "assignedAdminId": 2, "visibleToAdmin": True},
    ],
    "products": [
        {
            "id": 1,
            "branch": "Centre",
            "title": "Histology",
            "pages": 10,
            "mode": "auto",
            "hidden": False,
            "facultyId": 1,
            "createdAt": "2024-01-05T10:00:00.000Z",
        },
    ],
    "orders": [
        {
            "id": 1,
            "userId": 3,
            "sum": 150,
            "status": "printed",
            "createdAt": "2024-01-06T10:00:00.000Z",
            "printedAt": "2024-01-06T12:00:00.000Z",
            "items": [{"productId": 1, "title": "Histology", "qty": 1, "unitPrice": 150, "lineTotal": 150}],
        },
    ],
}


# =============================================================================
# NUMERIC-BRANCH LAYOUT
# =============================================================================


class TestNumericLayout:

    def test_counts(self, db_session):
        counts = legacy_import_service.import_snapshot(copy.deepcopy(NUMERIC_SNAPSHOT))
        assert counts == {
            "branches": 2,
            "catalog_entries": 3,
            "users": 4,
            "voucher_codes": 2,
            "products": 2,
            "orders": 0,
            "block_events": 1,
        }

    def test_users_and_roles(self, db_session):
        legacy_import_service.import_snapshot(copy.deepcopy(NUMERIC_SNAPSHOT))

        roles = {u.username: u.role for u in db_session.query(User).all()}
        assert roles == {"boss": "owner", "clerk": "branch_staff", "amina": "customer", "karim": "customer"}

        amina = db_session.get(User, 5)
        assert amina.branch_id == 1
        assert amina.credit_balance == 700
        assert amina.failed_redeem_count == 1
        medicine = db_session.query(CatalogEntry).filter_by(name="Medicine").one()
        general = db_session.query(CatalogEntry).filter_by(name="General").one()
        assert amina.faculty_id == medicine.id
        assert amina.track_id == general.id

        karim = db_session.get(User, 6)
        assert karim.blocked
        assert karim.blocked_count == 1

    def test_passwords_rehashed(self, db_session):
        legacy_import_service.import_snapshot(copy.deepcopy(NUMERIC_SNAPSHOT))

        assert db_session.get(User, 5).password_hash != "secret123"
        assert auth_service.authenticate("amina", "secret123") is not None

    def test_codes(self, db_session):
        legacy_import_service.import_snapshot(copy.deepcopy(NUMERIC_SNAPSHOT))

        sold = db_session.get(VoucherCode, 10)
        assert sold.code == "ABCD-EFGH-JKMN"
        assert sold.status == "SOLD"
        assert sold.branch_id == 1
        assert sold.sold_by_user_id == 2
        assert sold.sold_at is not None

        fresh = db_session.get(VoucherCode, 11)
        assert fresh.status == "FRESH"
        assert fresh.visible_to_staff_id is None

    def test_branch_settings_and_product_pricing(self, db_session):
        legacy_import_service.import_snapshot(copy.deepcopy(NUMERIC_SNAPSHOT))

        config = branch_service.get_pricing_config(1)
        assert config.price_per_page == 12
        assert config.new_badge_window_days == 5
        assert config.listing_page_size == 10
        assert config.extras_by_key()["EXTRA2"] == 60

        # 40 pages * 12 + 60 binding - 20
        boss = db_session.get(User, 1)
        assert product_service.price_preview(boss, 3)["final_price"] == 520
        assert db_session.get(Product, 4).hidden

    def test_block_events(self, db_session):
        legacy_import_service.import_snapshot(copy.deepcopy(NUMERIC_SNAPSHOT))

        event = db_session.query(BlockEvent).one()
        assert event.user_id == 6
        assert event.branch_id == 2
        assert event.reason == "THREE_WRONG_CODE_ATTEMPTS"


# =============================================================================
# NAMED-BRANCH LAYOUT
# =============================================================================


class TestNamedLayout:

    def test_import(self, db_session):
        counts = legacy_import_service.import_snapshot(copy.deepcopy(NAMED_SNAPSHOT))

        assert counts["branches"] == 2
        assert counts["catalog_entries"] == 3
        assert counts["orders"] == 1

        centre = db_session.query(Branch).filter_by(name="Centre").one()
        config = branch_service.get_pricing_config(centre.id)
        assert config.price_per_page == 15
        assert config.new_badge_window_days == 2
        assert config.listing_page_size == 8
        assert config.extras_by_key()["EXTRA1"] == 40

        lina = db_session.get(User, 3)
        assert lina.branch_id == centre.id
        assert lina.credit_balance == 300
        assert lina.year_id == db_session.query(CatalogEntry).filter_by(name="Year 1").one().id

    def test_code_flags(self, db_session):
        legacy_import_service.import_snapshot(copy.deepcopy(NAMED_SNAPSHOT))

        consumed = db_session.get(VoucherCode, 1)
        assert consumed.status == "CONSUMED"
        assert consumed.consumed_by_user_id == 3

        released = db_session.get(VoucherCode, 2)
        assert released.status == "FRESH"
        assert released.visible_to_staff_id == 2
        assert released.branch_id == db_session.get(User, 2).branch_id

    def test_orders(self, db_session):
        legacy_import_service.import_snapshot(copy.deepcopy(NAMED_SNAPSHOT))

        order = db_session.get(Order, 1)
        assert order.status == "PRINTED"
        assert order.total == 150
        assert order.printed_at is not None
        assert [line.to_dict()["line_total"] for line in order.lines] == [150]


# =============================================================================
# GUARDS
# =============================================================================


class TestGuards:

    def test_requires_empty_database(self, branch_a):
        with pytest.raises(StateConflictError) as exc:
            legacy_import_service.import_snapshot(copy.deepcopy(NUMERIC_SNAPSHOT))
        assert exc.value.code == "DATABASE_NOT_EMPTY"

    def test_rejects_non_object(self, db_session):
        with pytest.raises(ValidationError) as exc:
            legacy_import_service.import_snapshot([1, 2, 3])
        assert exc.value.code == "INVALID_SNAPSHOT"

    def test_duplicate_codes_roll_back_everything(self, db_session):
        snapshot = copy.deepcopy(NUMERIC_SNAPSHOT)
        snapshot["codes"].append({"id": 12, "code": "ABCD-EFGH-JKMN", "amount": 500, "status": "FRESH"})

        with pytest.raises(ValidationError) as exc:
            legacy_import_service.import_snapshot(snapshot)

        assert exc.value.code == "DUPLICATE_CODE"
        assert db_session.query(Branch).count() == 0
        assert db_session.query(User).count() == 0

    def test_unreadable_timestamp(self, db_session):
        snapshot = copy.deepcopy(NUMERIC_SNAPSHOT)
        snapshot["products"][0]["createdAt"] = "last tuesday"

        with pytest.raises(ValidationError) as exc:
            legacy_import_service.import_snapshot(snapshot)
        assert exc.value.code == "INVALID_SNAPSHOT"

    @pytest.mark.parametrize(
        "list_key,duplicate",
        [
            ("users", {"id": 7, "username": "amina", "password": "secret123", "role": "user", "branchId": 1}),
            ("users", {"id": 5, "username": "nadia", "password": "secret123", "role": "user", "branchId": 1}),
            ("codes", {"id": 10, "code": "HJKL-MNPQ-RSTU", "amount": 500, "status": "FRESH"}),
            ("products", {"id": 3, "branchId": 1, "title": "Copy", "pages": 4}),
            ("blockEvents", {"id": 1, "userId": 5, "at": 1700000000000}),
            ("branches", {"id": 3, "name": "Downtown"}),
        ],
    )
    def test_repeated_ids_and_usernames_roll_back(self, db_session, list_key, duplicate):
        snapshot = copy.deepcopy(NUMERIC_SNAPSHOT)
        snapshot[list_key].append(duplicate)

        with pytest.raises(ValidationError) as exc:
            legacy_import_service.import_snapshot(snapshot)

        assert exc.value.code == "INVALID_SNAPSHOT"
        assert db_session.query(Branch).count() == 0
        assert db_session.query(User).count() == 0

    def test_repeated_order_id(self, db_session):
        snapshot = copy.deepcopy(NAMED_SNAPSHOT)
        snapshot["orders"].append(copy.deepcopy(snapshot["orders"][0]))

        with pytest.raises(ValidationError) as exc:
            legacy_import_service.import_snapshot(snapshot)

        assert exc.value.code == "INVALID_SNAPSHOT"
        assert db_session.query(Order).count() == 0

    def test_out_of_range_id(self, db_session):
        snapshot = copy.deepcopy(NUMERIC_SNAPSHOT)
        snapshot["users"][2]["id"] = 10 ** 30

        with pytest.raises(ValidationError) as exc:
            legacy_import_service.import_snapshot(snapshot)
        assert exc.value.code == "INVALID_SNAPSHOT"

    def test_new_rows_get_ids_after_imported_ones(self, db_session):
        legacy_import_service.import_snapshot(copy.deepcopy(NUMERIC_SNAPSHOT))

        user = auth_service.register_customer("newcomer", "secret123", 1)
        assert user.id > 6
