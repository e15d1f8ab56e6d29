"""
po_workflow/forms.py

Flask-WTF input forms for the JSON API.

FlaskForm reads request.get_json() for submitted (POST/PATCH/DELETE) JSON requests, so the same
WTForms validators apply to API payloads. CSRF is off: the API is header-identified and keeps
no cookie session.

Create forms require their fields; update forms accept any subset. `supplied()` returns only
the fields present in the payload, which is what the services' partial updates expect.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation

from flask_wtf import FlaskForm
from wtforms import BooleanField, DecimalField, IntegerField, StringField
from wtforms.validators import AnyOf, DataRequired, Email, InputRequired, Length, Optional, StopValidation

from .errors import ValidationError
from .models import MAX_INT, MAX_MONEY, PurchaseOrderStatus, UserRole

ROLE_VALUES = [role.value for role in UserRole]
PURCHASE_ORDER_STATUS_VALUES = [status.value for status in PurchaseOrderStatus]
FLAG_STRINGS = {"true": True, "false": False}


# ---------------------------------------------------------------------
# Fields & validators
# ---------------------------------------------------------------------
class MoneyField(DecimalField):
    """Decimal parsed from its string form (accepts comma or dot), never via binary float."""

    def process_formdata(self, valuelist):
        if not valuelist:
            return
        raw = valuelist[0]
        if raw is None or (isinstance(raw, str) and raw.strip() == ""):
            self.data = None
            return
        if isinstance(raw, bool):
            self.data = None
            raise ValueError(self.gettext("Not a valid decimal value."))
        try:
            self.data = Decimal(str(raw).strip().replace(",", "."))
        except (InvalidOperation, ValueError) as exc:
            self.data = None
            raise ValueError(self.gettext("Not a valid decimal value.")) from exc
        if not self.data.is_finite():
            self.data = None
            raise ValueError(self.gettext("Not a valid decimal value."))


class FlagField(BooleanField):
    """JSON true/false (or the strings "true"/"false"); any other value is an error, never True."""

    def process_formdata(self, valuelist):
        if not valuelist:
            return
        raw = valuelist[0]
        if raw is None:
            self.data = None
        elif isinstance(raw, bool):
            self.data = raw
        elif isinstance(raw, str) and raw.strip().lower() in FLAG_STRINGS:
            self.data = FLAG_STRINGS[raw.strip().lower()]
        else:
            self.data = None
            raise ValueError(self.gettext("Not a valid boolean value."))


class TextField(StringField):
    """String input; JSON numbers, booleans and objects are rejected."""

    def process_formdata(self, valuelist):
        if not valuelist:
            return
        raw = valuelist[0]
        if raw is not None and not isinstance(raw, str):
            self.data = None
            raise ValueError(self.gettext("Not a valid string value."))
        self.data = raw


class CountField(IntegerField):
    """Whole numbers only: rejects null, booleans and fractional values."""

    def process_formdata(self, valuelist):
        if not valuelist:
            return
        raw = valuelist[0]
        if raw is None or isinstance(raw, bool):
            self.data = None
            raise ValueError(self.gettext("Not a valid integer value."))
        if isinstance(raw, float) and not raw.is_integer():
            self.data = None
            raise ValueError(self.gettext("Not a valid integer value."))
        try:
            self.data = int(raw)
        except (TypeError, ValueError) as exc:
            self.data = None
            raise ValueError(self.gettext("Not a valid integer value.")) from exc


def positive(form, field):
    if field.data is not None and field.data <= 0:
        raise StopValidation("Must be greater than zero.")


def at_most(limit):
    message = f"Must be at most {limit}."

    def _at_most(form, field):
        if field.data is not None and field.data > limit:
            raise StopValidation(message)

    return _at_most


def present(form, field):
    """Value must be in the payload and not null (False and 0 are fine)."""
    if not field.raw_data or field.raw_data[0] is None:
        raise StopValidation("This field is required.")


def not_null(form, field):
    """Field may be omitted, but not sent as null."""
    if field.raw_data and field.raw_data[0] is None:
        raise StopValidation("This field cannot be null.")


# ---------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------
class JsonForm(FlaskForm):
    class Meta:
        csrf = False

    def validate_or_raise(self) -> "JsonForm":
        if not self.validate():
            raise ValidationError(self.errors)
        return self

    def supplied(self) -> dict:
        """Parsed values of the fields present in the payload."""
        return {
            name: field.data
            for name, field in self._fields.items()
            if getattr(field, "raw_data", None)
        }


# ---------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------
class UserCreateForm(JsonForm):
    username = TextField("username", validators=[DataRequired(), Length(min=3, max=50)])
    email = TextField("email", validators=[DataRequired(), Email(), Length(max=255)])
    full_name = TextField("full_name", validators=[DataRequired(), Length(min=1, max=100)])
    role = TextField("role", validators=[DataRequired(), AnyOf(ROLE_VALUES)])
    is_active = FlagField("is_active", validators=[not_null])


class UserUpdateForm(JsonForm):
    username = TextField("username", validators=[Optional(), Length(min=3, max=50)])
    email = TextField("email", validators=[Optional(), Email(), Length(max=255)])
    full_name = TextField("full_name", validators=[Optional(), Length(min=1, max=100)])
    role = TextField("role", validators=[Optional(), AnyOf(ROLE_VALUES)])
    is_active = FlagField("is_active", validators=[not_null])


# ---------------------------------------------------------------------
# Purchase orders
# ---------------------------------------------------------------------
class PurchaseOrderCreateForm(JsonForm):
    title = TextField("title", validators=[DataRequired(), Length(min=1, max=200)])
    description = TextField("description", validators=[Optional(), Length(max=5000)])
    total_amount = MoneyField("total_amount", validators=[InputRequired(), positive, at_most(MAX_MONEY)])


class PurchaseOrderUpdateForm(JsonForm):
    title = TextField("title", validators=[Optional(), Length(min=1, max=200)])
    description = TextField("description", validators=[Optional(), Length(max=5000)])
    total_amount = MoneyField("total_amount", validators=[not_null, Optional(), positive, at_most(MAX_MONEY)])
    status = TextField("status", validators=[Optional(), AnyOf(PURCHASE_ORDER_STATUS_VALUES)])


class ApprovalForm(JsonForm):
    approved = FlagField("approved", validators=[present])


# ---------------------------------------------------------------------
# Cost estimates
# ---------------------------------------------------------------------
class CostEstimateCreateForm(JsonForm):
    purchase_order_id = CountField("purchase_order_id", validators=[present, positive, at_most(MAX_INT)])
    title = TextField("title", validators=[DataRequired(), Length(min=1, max=200)])
    description = TextField("description", validators=[Optional(), Length(max=5000)])
    total_cost = MoneyField("total_cost", validators=[InputRequired(), positive, at_most(MAX_MONEY)])


class CostEstimateUpdateForm(JsonForm):
    title = TextField("title", validators=[Optional(), Length(min=1, max=200)])
    description = TextField("description", validators=[Optional(), Length(max=5000)])
    total_cost = MoneyField("total_cost", validators=[not_null, Optional(), positive, at_most(MAX_MONEY)])


class LineItemCreateForm(JsonForm):
    description = TextField("description", validators=[DataRequired(), Length(min=1, max=200)])
    quantity = CountField("quantity", validators=[present, positive, at_most(MAX_INT)])
    unit_price = MoneyField("unit_price", validators=[InputRequired(), positive, at_most(MAX_MONEY)])


class LineItemUpdateForm(JsonForm):
    description = TextField("description", validators=[Optional(), Length(min=1, max=200)])
    quantity = CountField("quantity", validators=[Optional(), positive, at_most(MAX_INT)])
    unit_price = MoneyField("unit_price", validators=[not_null, Optional(), positive, at_most(MAX_MONEY)])
