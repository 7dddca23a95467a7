"""
schemas/group_schema.py — Marshmallow schemas for group, join and wishlist endpoints.

Validation responsibility:
  - This file: field types, string lengths, non-empty checks (including trim).
  - services/group_service.py:
      - FORBIDDEN (participant / organizer checks)
      - ALREADY_MEMBER, GROUP_FULL, GROUP_CLOSED (require the group record)
      - PASSWORD_REQUIRED / INVALID_GROUP_PASSWORD
      - GROUP_NOT_FOUND

IMPORTANT: Inherits from marshmallow.Schema directly so schemas load without
           a Flask app context.
"""

from __future__ import annotations

from marshmallow import (
    EXCLUDE,
    INCLUDE,
    Schema,
    ValidationError,
    fields,
    pre_load,
    validate,
)

from secret_santa.app.models.group import (
    JOIN_CODE_LENGTH,
    MAX_PARTICIPANTS_LIMIT,
    MIN_PARTICIPANTS_FOR_DRAW,
)


def _validate_non_empty_after_trim(value: str) -> None:
    """Raises ValidationError if the string is blank or contains only whitespace."""
    if not value.strip():
        raise ValidationError("This field must not be blank or contain only whitespace.")


class CreateGroupSchema(Schema):
    """
    POST /groups

    name is required; everything else is optional. An empty password means
    the group is not password protected.
    """

    name = fields.Str(
        required=True,
        validate=[
            validate.Length(
                min=1,
                max=100,
                error="Group name must be between 1 and 100 characters.",
            ),
            _validate_non_empty_after_trim,
        ],
    )

    description = fields.Str(
        load_default="",
        validate=validate.Length(max=500),
    )

    password = fields.Str(
        load_default=None,
        allow_none=True,
        load_only=True,
        validate=validate.Length(max=128),
    )

    # Default comes from DEFAULT_MAX_PARTICIPANTS in the route.
    max_participants = fields.Int(
        load_default=None,
        allow_none=True,
        strict=True,
        validate=validate.Range(
            min=MIN_PARTICIPANTS_FOR_DRAW,
            max=MAX_PARTICIPANTS_LIMIT,
            error=f"max_participants must be between {MIN_PARTICIPANTS_FOR_DRAW} "
                  f"and {MAX_PARTICIPANTS_LIMIT}.",
        ),
    )

    is_public = fields.Bool(load_default=False)


class JoinGroupSchema(Schema):
    """POST /groups/join — code is matched case-insensitively."""

    code = fields.Str(
        required=True,
        validate=validate.Length(
            equal=JOIN_CODE_LENGTH,
            error=f"Join codes are {JOIN_CODE_LENGTH} characters long.",
        ),
    )
    password = fields.Str(load_default=None, allow_none=True, load_only=True)

    @pre_load
    def normalise_code(self, data, **kwargs):
        if isinstance(data, dict) and isinstance(data.get("code"), str):
            data = {**data, "code": data["code"].strip().upper()}
        return data


class SearchGroupsSchema(Schema):
    """GET /groups/search?query=..."""

    class Meta:
        unknown = EXCLUDE

    query = fields.Str(load_default=None, validate=validate.Length(max=100))


class WishItemSchema(Schema):
    """
    One wishlist entry. Only used to check items; the item itself is stored
    as sent, unknown keys included.
    """

    class Meta:
        unknown = INCLUDE

    name = fields.Str(
        required=True,
        validate=[validate.Length(min=1, max=200), _validate_non_empty_after_trim],
    )
    description = fields.Str(validate=validate.Length(max=1000))
    link = fields.Str(validate=validate.Length(max=2000))


class WishlistSchema(Schema):
    """
    PUT /groups/:id/wishlist

    `items` is left raw so the service decides what a non-list means
    (coerced to [] by default, rejected when WISHLIST_STRICT is on).
    List entries are checked with WishItemSchema and returned unchanged.
    """

    class Meta:
        unknown = EXCLUDE

    items = fields.Raw(load_default=None, allow_none=True)

    def load_items(self, data: dict):
        items = self.load(data)["items"]
        if not isinstance(items, list):
            return items
        errors = WishItemSchema(many=True).validate(items)
        if errors:
            # {index: {field: [message]}} → one readable message on "items"
            index = min(errors)
            item_errors = errors[index]
            if isinstance(item_errors, dict):
                field_name, messages = next(iter(item_errors.items()))
                detail = f"{field_name}: {messages[0] if isinstance(messages, list) else messages}"
            else:
                detail = item_errors[0] if isinstance(item_errors, list) else str(item_errors)
            raise ValidationError({"items": [f"Item {index}: {detail}"]})
        return items
