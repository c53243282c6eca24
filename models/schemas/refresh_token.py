from marshmallow import Schema, fields


class RefreshTokenOutSchema(Schema):
    """Audit view of a refresh token row; the token strings themselves never leave the cookie."""
    id = fields.String()
    created_at = fields.DateTime()
    expires_at = fields.DateTime()
    created_by_ip = fields.String(allow_none=True)
    revoked_at = fields.DateTime(allow_none=True)
    revoked_by_ip = fields.String(allow_none=True)
    reason_revoked = fields.String(allow_none=True)
    has_successor = fields.Method("get_has_successor")
    is_expired = fields.Boolean()
    is_revoked = fields.Boolean()
    is_active = fields.Boolean()

    def get_has_successor(self, obj):
        return obj.replaced_by_token is not None
