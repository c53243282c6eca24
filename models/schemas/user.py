from marshmallow import Schema, fields, pre_load, validates, ValidationError


def _norm_username(v):
    return v.strip().lower() if isinstance(v, str) else v


class UserCreateSchema(Schema):
    f_name = fields.String(allow_none=True)
    l_name = fields.String(allow_none=True)
    username = fields.String(required=True, validate=lambda s: 0 < len(s.strip()) <= 255)
    password = fields.String(required=True, load_only=True)

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict) and "username" in data:
            data["username"] = _norm_username(data["username"])
        return data

    @validates("password")
    def validate_password(self, value, **kwargs):
        if len(value) < 8:
            raise ValidationError("Password must be at least 8 characters long.")


class AuthenticateSchema(Schema):
    username = fields.String(required=True)
    password = fields.String(required=True, load_only=True)

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict) and "username" in data:
            data["username"] = _norm_username(data["username"])
        return data


class RevokeTokenSchema(Schema):
    token = fields.String(allow_none=True)


class UserOutSchema(Schema):
    id = fields.String(allow_none=False)
    f_name = fields.String(allow_none=True)
    l_name = fields.String(allow_none=True)
    username = fields.String(allow_none=False)
